"""Connectivity checks for VPN, proxy and the backplane API."""

from __future__ import annotations

import copy
import functools
import logging
import socket
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

import requests

log = logging.getLogger(__name__)

VPN_INTERFACE_PREFIXES = ("tun", "tap", "ppp", "wg", "utun")


class ConnectivityError(Exception):
    """A connectivity check failed."""


def list_interfaces() -> list[str]:
    """Return the names of the host's network interfaces."""
    return [name for _, name in socket.if_nameindex()]


def http_get(url: str, proxy: Optional[str] = None) -> int:
    """GET url, optionally through proxy, and return the status code."""
    proxies = {"http": proxy, "https": proxy} if proxy else None
    with requests.get(url, proxies=proxies) as response:
        return response.status_code


def test_endpoint_connectivity(
    url: str, getter: Optional[Callable[[str], int]] = None
) -> None:
    """Raise ConnectivityError unless a GET on url answers with status 200."""
    getter = getter if getter is not None else http_get
    log.debug("Making GET request to %s", url)
    try:
        status = getter(url)
    except (requests.RequestException, OSError) as err:
        log.error("Failed to get response from test endpoint: %s", err)
        raise ConnectivityError(str(err)) from err
    log.debug("Received response status code: %d", status)
    if status != 200:
        message = f"Unexpected status code: {status}"
        log.error(message)
        raise ConnectivityError(message)


test_endpoint_connectivity.__test__ = False


class HealthChecker:
    """Runs connectivity checks against the endpoints in the backplane configuration.

    The configuration object is expected to carry proxy_url,
    proxy_check_endpoint and vpn_check_endpoint, and a check_api_connection()
    method.
    """

    def __init__(
        self,
        config_getter: Callable[[], Any],
        interfaces: Optional[Callable[[], list[str]]] = None,
        getter: Optional[Callable[..., int]] = None,
    ) -> None:
        self.config_getter = config_getter
        self.interfaces = interfaces if interfaces is not None else list_interfaces
        self.getter = getter if getter is not None else http_get

    def _config(self) -> Any:
        try:
            return self.config_getter()
        except Exception as err:
            log.error("Failed to get backplane configuration: %s", err)
            raise ConnectivityError(f"failed to get backplane configuration: {err}") from err

    def vpn_check_endpoint(self) -> str:
        """Return the configured VPN check endpoint."""
        endpoint = getattr(self._config(), "vpn_check_endpoint", "")
        if not endpoint:
            message = "VPN check endpoint not configured"
            log.warning(message)
            raise ConnectivityError(message)
        return endpoint

    def proxy_test_endpoint(self) -> str:
        """Return the configured proxy test endpoint."""
        endpoint = getattr(self._config(), "proxy_check_endpoint", "")
        if not endpoint:
            message = "proxy test endpoint not configured"
            log.warning(message)
            raise ConnectivityError(message)
        return endpoint

    def check_vpn_connectivity(self) -> None:
        """Require a VPN interface and a reachable internal endpoint."""
        try:
            names = self.interfaces()
        except OSError as err:
            log.error("Failed to get network interfaces: %s", err)
            raise ConnectivityError(f"failed to get network interfaces: {err}") from err

        if not any(name.startswith(VPN_INTERFACE_PREFIXES) for name in names):
            message = f"No VPN interfaces found: [{' '.join(VPN_INTERFACE_PREFIXES)}]"
            log.warning(message)
            raise ConnectivityError(message)

        endpoint = self.vpn_check_endpoint()
        try:
            test_endpoint_connectivity(endpoint, self.getter)
        except ConnectivityError as err:
            message = f"Failed to access internal URL {endpoint}: {err}"
            log.error(message)
            raise ConnectivityError(message) from err

    def check_proxy_connectivity(self) -> str:
        """Reach the proxy test endpoint through the configured proxy; return the proxy URL."""
        config = self._config()
        proxy_url = getattr(config, "proxy_url", None)
        if not proxy_url:
            message = "no proxy URL configured in backplane configuration"
            log.warning(message)
            raise ConnectivityError(message)

        log.info("Getting the working proxy URL ['%s'] from local backplane configuration.", proxy_url)
        try:
            _ = urlsplit(proxy_url).port
        except ValueError as err:
            log.error("Invalid proxy URL: %s", err)
            raise ConnectivityError(f"invalid proxy URL: {err}") from err

        endpoint = self.proxy_test_endpoint()
        log.info("Testing connectivity to the pre-defined test endpoint ['%s'] with the proxy.", endpoint)
        try:
            test_endpoint_connectivity(endpoint, functools.partial(self.getter, proxy=proxy_url))
        except ConnectivityError as err:
            message = f"Failed to access target endpoint ['{endpoint}'] with the proxy: {err}"
            log.error(message)
            raise ConnectivityError(message) from err
        return proxy_url

    def check_backplane_api_connectivity(self, proxy_url: str = "") -> None:
        """Check the backplane API, through proxy_url when one is given."""
        config = copy.copy(self._config())
        if proxy_url:
            config.proxy_url = proxy_url
        try:
            config.check_api_connection()
        except Exception as err:
            log.error("Failed to access backplane API: %s", err)
            raise ConnectivityError(f"failed to access backplane API: {err}") from err
        print("Successfully connected to the backplane API!")

    def run(self, check_vpn: bool = False, check_proxy: bool = False) -> int:
        """Run the selected checks, report on stdout and return an exit status."""
        if check_vpn:
            return 0 if self._report_vpn() else 1
        if check_proxy:
            try:
                self.check_vpn_connectivity()
            except ConnectivityError as err:
                print("VPN connectivity check failed:", err)
                print(
                    "Note: Proxy connectivity check requires VPN to be connected. "
                    "Please ensure VPN is connected and try again."
                )
                return 1
            return 0 if self._report_proxy() is not None else 1
        return self._check_all()

    def _report_vpn(self) -> bool:
        print("Checking VPN connectivity...")
        try:
            self.check_vpn_connectivity()
        except ConnectivityError as err:
            print("VPN connectivity check failed:", err)
            return False
        print("VPN connectivity check passed!")
        return True

    def _report_proxy(self) -> Optional[str]:
        print("Checking proxy connectivity...")
        try:
            proxy_url = self.check_proxy_connectivity()
        except ConnectivityError as err:
            print("Proxy connectivity check failed:", err)
            return None
        print("Proxy connectivity check passed!")
        return proxy_url

    def _check_all(self) -> int:
        if not self._report_vpn():
            return 1
        proxy_url = self._report_proxy()
        if proxy_url is None:
            return 1
        print("Checking backplane API connectivity...")
        try:
            self.check_backplane_api_connectivity(proxy_url)
        except ConnectivityError as err:
            print("Backplane API connectivity check failed:", err)
            return 1
        print("Backplane API connectivity check passed!")
        return 0