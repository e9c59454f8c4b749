"""Local reverse proxy to the monitoring dashboards served through backplane."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Iterable, Mapping, Optional
from urllib.parse import SplitResult, urlsplit, urlunsplit

import requests

from .utils import get_free_port, match_base_domain

log = logging.getLogger(__name__)

ALERTMANAGER = "alertmanager"
PROMETHEUS = "prometheus"
THANOS = "thanos"
GRAFANA = "grafana"
OPENSHIFT_MONITORING_NS = "openshift-monitoring"

VALID_MONITORING_NAMES = (PROMETHEUS, ALERTMANAGER, THANOS, GRAFANA)

_DEPRECATED_UIS = frozenset({PROMETHEUS, ALERTMANAGER, GRAFANA})
_BACKPLANE_CLUSTER_SEGMENT = "backplane/cluster"

_VERSION_PATTERN = re.compile(
    r"^v?([0-9]+)(\.[0-9]+)?(\.[0-9]+)?"
    r"(-([0-9A-Za-z\-]+(\.[0-9A-Za-z\-]+)*))?"
    r"(\+([0-9A-Za-z\-]+(\.[0-9A-Za-z\-]+)*))?$"
)

_HOP_BY_HOP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)


@dataclass
class MonitoringOptions:
    """Settings of a monitoring proxy session."""

    namespace: str = ""
    selector: str = ""
    port: str = ""
    origin_url: str = ""
    listen_addr: str = ""
    browser: bool = False
    keep_alive: bool = False


class MonitoringError(Exception):
    """The monitoring proxy cannot be set up or served."""


def single_joining_slash(a: str, b: str) -> str:
    """Join two URL paths with exactly one slash between them."""
    a_slash = a.endswith("/")
    b_slash = b.startswith("/")
    if a_slash and b_slash:
        return a + b[1:]
    if not a_slash and not b_slash:
        return a + "/" + b
    return a + b


def backplane_monitoring_url(host: str, monitoring_type: str) -> str:
    """Return the backplane monitoring URL for a backplane cluster API host."""
    if _BACKPLANE_CLUSTER_SEGMENT not in host:
        raise MonitoringError(
            "the api server is not a backplane url, please make sure you login "
            "to the cluster using backplane"
        )
    url = host.replace(_BACKPLANE_CLUSTER_SEGMENT, f"backplane/{monitoring_type}", 1)
    if url.endswith("/"):
        url = url[:-1]
    return url


def _set_header(headers: dict[str, str], name: str, value: str) -> None:
    for key in [key for key in headers if key.lower() == name.lower()]:
        del headers[key]
    headers[name] = value


def build_proxy_request(
    proxy_url: str,
    path: str,
    headers: Optional[Mapping[str, str]],
    options: MonitoringOptions,
    user_name: str,
    access_token: str,
    is_grafana: bool,
) -> tuple[str, dict[str, str]]:
    """Return the upstream URL and headers for a request to path."""
    target = urlsplit(proxy_url)
    request_path, _, query = path.partition("?")
    url = urlunsplit(
        ("https", target.netloc, single_joining_slash(target.path, request_path), query, "")
    )

    result = dict(headers or {})
    if not any(key.lower() == "user-agent" for key in result):
        # An explicit empty value keeps the HTTP library from adding its own.
        result["User-Agent"] = ""
    if is_grafana:
        _set_header(result, "X-Forwarded-User", user_name)
    if options.namespace:
        _set_header(result, "X-Namespace", options.namespace)
    if options.selector:
        _set_header(result, "X-Selector", options.selector)
    if options.port:
        _set_header(result, "X-Port", options.port)
    _set_header(result, "Authorization", f"Bearer {access_token}")
    return url, result


def _minor_version(version: str) -> int:
    match = _VERSION_PATTERN.match(version)
    if match is None:
        raise MonitoringError("Invalid Semantic Version")
    minor = match.group(2)
    return int(minor[1:]) if minor else 0


def validate_cluster_version(
    options: MonitoringOptions, cluster_version: str, monitoring_name: str
) -> None:
    """Refuse UIs that clusters of version 4.11 and later no longer offer."""
    if options.namespace != OPENSHIFT_MONITORING_NS or not cluster_version:
        return
    if _minor_version(cluster_version) >= 11 and monitoring_name in _DEPRECATED_UIS:
        raise MonitoringError(
            "this cluster's version is 4.11 or greater. "
            "Following version 4.11, Prometheus, AlertManager and Grafana monitoring UIs "
            "are deprecated, please use 'ocm backplane console' and use the observe tab "
            "for the same"
        )


def serve_url(
    options: MonitoringOptions, base_domain: str, route_hosts: Iterable[str]
) -> SplitResult:
    """Return the local URL to print, checking the origin URL against the cluster.

    base_domain is the base domain of the current cluster and route_hosts the
    ingress hosts of the routes in options.namespace. The host part of the
    returned URL is left empty for the caller to fill in.
    """
    if not options.origin_url:
        return SplitResult("http", "", "", "", "")
    try:
        origin = urlsplit(options.origin_url)
        hostname = origin.hostname or ""
    except ValueError as err:
        raise MonitoringError(str(err)) from err

    if not match_base_domain(hostname, base_domain):
        raise MonitoringError(
            f"the basedomain {base_domain} of the current logged cluster does not match "
            "the provided url, please login to the corresponding cluster first"
        )
    if not options.namespace:
        raise MonitoringError(
            "namepace should not be blank, please specify namespace by --namespace"
        )
    hosts = list(route_hosts)
    for host in hosts:
        log.debug("found route ingress %s", host)
    if not any(match_base_domain(hostname, host) for host in hosts):
        raise MonitoringError(
            f"cannot find a matching route in namespace {options.namespace} for the given "
            "url, please specify a correct namespace by --namespace"
        )
    return SplitResult("http", "", origin.path, origin.query, origin.fragment)


def _make_handler(
    target_url: str,
    options: MonitoringOptions,
    user_name: str,
    access_token: str,
    is_grafana: bool,
) -> type[BaseHTTPRequestHandler]:
    class _ProxyHandler(BaseHTTPRequestHandler):
        def _forward(self) -> None:
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length else None
            incoming = {
                key: value
                for key, value in self.headers.items()
                if key.lower() not in _HOP_BY_HOP and key.lower() != "host"
            }
            url, headers = build_proxy_request(
                target_url, self.path, incoming, options, user_name, access_token, is_grafana
            )
            try:
                response = requests.request(
                    self.command, url, headers=headers, data=body, allow_redirects=False
                )
            except requests.RequestException as err:
                self.send_error(502, str(err))
                return
            content = response.content
            self.send_response(response.status_code)
            for key, value in response.headers.items():
                lowered = key.lower()
                if lowered in _HOP_BY_HOP or lowered in ("content-length", "content-encoding"):
                    continue
                self.send_header(key, value)
            self.send_header("Content-Length", str(len(content)))
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(content)

        do_GET = _forward
        do_POST = _forward
        do_PUT = _forward
        do_PATCH = _forward
        do_DELETE = _forward
        do_HEAD = _forward
        do_OPTIONS = _forward

        def log_message(self, format: str, *args: object) -> None:
            log.debug(format, *args)

    return _ProxyHandler


def _listen(addr: str, handler: type[BaseHTTPRequestHandler]) -> ThreadingHTTPServer:
    host, _, port = addr.rpartition(":")
    try:
        return ThreadingHTTPServer((host.strip("[]"), int(port)), handler)
    except (OSError, ValueError) as err:
        raise MonitoringError(f"listen tcp {addr}: {err}") from err


def run_proxy(
    target_url: str,
    options: MonitoringOptions,
    user_name: str,
    access_token: str,
    is_grafana: bool,
) -> str:
    """Check that target_url answers, then serve a local proxy to it.

    Returns the local URL. The proxy is served until interrupted only when
    options.keep_alive is set.
    """
    if not target_url:
        raise MonitoringError("monitoring url is empty")

    url, headers = build_proxy_request(
        target_url, "/", {}, options, user_name, access_token, is_grafana
    )
    try:
        response = requests.request("GET", url, headers=headers, allow_redirects=False)
    except requests.RequestException as err:
        raise MonitoringError(f"connecting to server {err}") from err
    if response.status_code >= 400:
        raise MonitoringError(response.content.decode("utf-8", errors="replace"))

    addr = options.listen_addr or f"127.0.0.1:{get_free_port()}"
    server = _listen(
        addr, _make_handler(target_url, options, user_name, access_token, is_grafana)
    )

    origin = urlsplit(options.origin_url) if options.origin_url else None
    local_url = urlunsplit(
        (
            "http",
            addr,
            origin.path if origin else "",
            origin.query if origin else "",
            origin.fragment if origin else "",
        )
    )

    if options.browser:
        log.warning(
            "failed opening a browser: no browser launcher available, open %s manually",
            local_url,
        )

    if not options.keep_alive:
        server.server_close()
        return local_url

    if not options.browser:
        print(f"Serving {target_url} at {local_url}")
    try:
        server.serve_forever()
    finally:
        server.server_close()
    return local_url