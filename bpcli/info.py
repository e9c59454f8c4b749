"""Build and version information for the backplane command line tool."""

from __future__ import annotations

from importlib import metadata
from typing import Optional

# Environment variables
BACKPLANE_URL_ENV_NAME = "BACKPLANE_URL"
BACKPLANE_PROXY_ENV_NAME = "HTTPS_PROXY"
BACKPLANE_CONFIG_PATH_ENV_NAME = "BACKPLANE_CONFIG"
BACKPLANE_KUBECONFIG_ENV_NAME = "KUBECONFIG"

# Configuration
BACKPLANE_CONFIG_DEFAULT_FILE_PATH = ".config/backplane"
BACKPLANE_CONFIG_DEFAULT_FILE_NAME = "config.json"

# Session
BACKPLANE_DEFAULT_SESSION_DIRECTORY = "backplane"

# Project release locations
GITHUB_HOST = "github.com"
UPSTREAM_REPOSITORY = "bpcli/bpcli"
UPSTREAM_RELEASE_API = f"https://api.{GITHUB_HOST}/repos/{UPSTREAM_REPOSITORY}/releases/latest"
UPSTREAM_GIT_MODULE = f"https://{GITHUB_HOST}/{UPSTREAM_REPOSITORY}/cmd/bpcli"
UPSTREAM_README_TEMPLATE = f"https://{GITHUB_HOST}/{UPSTREAM_REPOSITORY}/-/blob/%s/README.md"

# Nginx configuration template for the monitoring plugin
MONITORING_PLUGIN_NGINX_CONFIG_TEMPLATE = """
	error_log /dev/stdout info;
	events {}
	http {
  	include            /etc/nginx/mime.types;
  	default_type       application/octet-stream;
  	keepalive_timeout  65;
  	server {
    	listen              %s;
    	root                /usr/share/nginx/html;
  	}
	}
	"""

MONITORING_PLUGIN_NGINX_CONFIG_FILENAME = "monitoring-plugin-nginx-%s.conf"

# Version of the tool, set at release time.
VERSION = ""

_DISTRIBUTION_NAME = "bpcli"


def upstream_readme_tagged(version: str) -> str:
    """Return the README location for the given release tag."""
    return UPSTREAM_README_TEMPLATE % version


UPSTREAM_README_TAGGED = upstream_readme_tagged(VERSION)


class BuildInfoService:
    """Reads the version recorded in the installed distribution's metadata."""

    def __init__(self, distribution: str = _DISTRIBUTION_NAME) -> None:
        self.distribution = distribution

    def get_build_info(self) -> Optional[str]:
        """Return the installed version, or None when it is not available."""
        try:
            return metadata.version(self.distribution)
        except metadata.PackageNotFoundError:
            return None


class InfoService:
    """Determines the version of the running tool."""

    def __init__(
        self,
        version: Optional[str] = None,
        build_info: Optional[BuildInfoService] = None,
    ) -> None:
        self.version = VERSION if version is None else version
        self.build_info = build_info if build_info is not None else BuildInfoService()

    def get_version(self) -> str:
        """Return the preset version, else the build version, else 'unknown'."""
        if self.version:
            return self.version
        build_version = self.build_info.get_build_info()
        if build_version is not None:
            return build_version.lstrip("v")
        return "unknown"