"""Locating the backplane cluster from a kubeconfig or a cluster key."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

from .kubeconfig import default_kubeconfig_path, load_kubeconfig
from .utils import CLUSTER_ID_REGEXP

log = logging.getLogger(__name__)

_CLUSTER_ID_PATTERN = re.compile(CLUSTER_ID_REGEXP)


@dataclass(frozen=True)
class BackplaneCluster:
    """A cluster reached through backplane."""

    cluster_id: str = ""
    cluster_url: str = ""  # e.g. https://api-backplane.apps.com/backplane/cluster/<cluster-id>/
    backplane_host: str = ""  # e.g. https://api-backplane.apps.com


def _entry(config: dict, section: str, name: Any) -> Optional[dict]:
    for item in config.get(section) or []:
        if isinstance(item, dict) and item.get("name") == name:
            return item
    return None


def _current_server(config: dict) -> str:
    name = config.get("current-context")
    if not name:
        raise ValueError("invalid configuration: no current context is set")
    context_entry = _entry(config, "contexts", name)
    if context_entry is None:
        raise ValueError(f"invalid configuration: context was not found for {name!r}")
    cluster_name = (context_entry.get("context") or {}).get("cluster")
    cluster_entry = _entry(config, "clusters", cluster_name)
    if cluster_entry is None:
        raise ValueError(f"invalid configuration: cluster {cluster_name!r} was not found")
    server = (cluster_entry.get("cluster") or {}).get("server")
    if not server:
        raise ValueError(f"invalid configuration: no server found for cluster {cluster_name!r}")
    return server


class ClusterUtils:
    """Finds the backplane cluster in use.

    ocm must offer get_target_cluster(key) returning (cluster_id, cluster_name);
    config_getter returns the backplane configuration, which carries url.
    """

    def __init__(
        self,
        ocm: Any = None,
        config_getter: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.ocm = ocm
        self.config_getter = config_getter

    def cluster_id_and_host_from_url(self, cluster_url: str) -> tuple[str, str]:
        """Return the cluster id and the https backplane host of a cluster URL."""
        parts = urlsplit(cluster_url)
        host = parts.netloc.rpartition("@")[2]
        backplane_host = "https://" + host
        match = _CLUSTER_ID_PATTERN.search(parts.path)
        if match is None:
            raise ValueError("couldn't find cluster-id from the backplane cluster url")
        return match.group(1), backplane_host

    def from_config(self, kubeconfig_path: Optional[str] = None) -> BackplaneCluster:
        """Return the cluster of the current context of the kubeconfig."""
        log.debug("Finding target cluster from kube config")
        config = load_kubeconfig(kubeconfig_path or default_kubeconfig_path())
        server = _current_server(config)
        cluster_id, backplane_host = self.cluster_id_and_host_from_url(server)
        cluster = BackplaneCluster(
            cluster_id=cluster_id, cluster_url=server, backplane_host=backplane_host
        )
        log.debug("Found target cluster: %s", cluster)
        return cluster

    def from_cluster_key(self, cluster_key: str) -> BackplaneCluster:
        """Search OCM for the cluster and build its backplane URL."""
        if self.ocm is None or self.config_getter is None:
            raise ValueError("an OCM client and a configuration source are required")
        log.debug("Finding target cluster for search key %s", cluster_key)
        cluster_id, cluster_name = self.ocm.get_target_cluster(cluster_key)
        backplane_url = self.config_getter().url
        cluster = BackplaneCluster(
            cluster_id=cluster_id,
            backplane_host=backplane_url,
            cluster_url=f"{backplane_url}/backplane/cluster/{cluster_id}",
        )
        log.debug("Found target cluster %s: %s", cluster_name, cluster)
        return cluster

    def get(self, cluster_key: Optional[str] = None) -> BackplaneCluster:
        """Search by cluster_key when given, else read the kubeconfig."""
        if cluster_key:
            return self.from_cluster_key(cluster_key)
        return self.from_config()