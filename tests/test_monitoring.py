from unittest import mock

import pytest

from bpcli.monitoring import (
    GRAFANA,
    OPENSHIFT_MONITORING_NS,
    PROMETHEUS,
    THANOS,
    MonitoringError,
    MonitoringOptions,
    backplane_monitoring_url,
    build_proxy_request,
    run_proxy,
    serve_url,
    single_joining_slash,
    validate_cluster_version,
)
from bpcli.utils import get_free_port


@pytest.mark.parametrize(
    "a,b",
    [("a/", "/b"), ("a", "b"), ("a/", "b"), ("a", "/b")],
)
def test_single_joining_slash_has_one_slash(a, b):
    assert single_joining_slash(a, b) == "a/b"


def test_single_joining_slash_empty_parts():
    assert single_joining_slash("", "") == "/"
    assert single_joining_slash("/base", "") == "/base/"


def test_backplane_monitoring_url_replaces_cluster_segment():
    url = backplane_monitoring_url(
        "https://api.example.com/backplane/cluster/abc123/", PROMETHEUS
    )
    assert url == "https://api.example.com/backplane/prometheus/abc123"
    assert not url.endswith("/")


def test_backplane_monitoring_url_rejects_non_backplane_host():
    with pytest.raises(MonitoringError, match="not a backplane url"):
        backplane_monitoring_url("https://cluster.example.com", PROMETHEUS)


def test_build_proxy_request_url_and_auth():
    url, headers = build_proxy_request(
        "http://host.example.com/backplane/thanos/abc",
        "/api/v1/query?q=up",
        {},
        MonitoringOptions(),
        "",
        "token",
        False,
    )
    assert url == "https://host.example.com/backplane/thanos/abc/api/v1/query?q=up"
    assert headers["Authorization"] == "Bearer token"
    assert headers["User-Agent"] == ""
    assert "X-Forwarded-User" not in headers
    assert "X-Namespace" not in headers


def test_build_proxy_request_keeps_user_agent_and_sets_options():
    options = MonitoringOptions(namespace="ns1", selector="app=web", port="9090")
    _, headers = build_proxy_request(
        "https://host.example.com/base/",
        "/",
        {"user-agent": "curl", "authorization": "Bearer old"},
        options,
        "alice",
        "token",
        True,
    )
    assert headers["user-agent"] == "curl"
    assert "User-Agent" not in headers
    assert headers["X-Forwarded-User"] == "alice"
    assert headers["X-Namespace"] == "ns1"
    assert headers["X-Selector"] == "app=web"
    assert headers["X-Port"] == "9090"
    assert headers["Authorization"] == "Bearer token"
    assert "authorization" not in headers


def test_validate_cluster_version_deprecated_uis():
    options = MonitoringOptions(namespace=OPENSHIFT_MONITORING_NS)
    with pytest.raises(MonitoringError, match="4.11 or greater"):
        validate_cluster_version(options, "4.14.8", PROMETHEUS)
    with pytest.raises(MonitoringError, match="4.11 or greater"):
        validate_cluster_version(options, "4.11", GRAFANA)
    assert validate_cluster_version(options, "4.10.3", PROMETHEUS) is None
    assert validate_cluster_version(options, "4.14.8", THANOS) is None


def test_validate_cluster_version_other_namespace_is_not_checked():
    options = MonitoringOptions(namespace="custom")
    assert validate_cluster_version(options, "not-a-version", PROMETHEUS) is None
    with pytest.raises(MonitoringError):
        validate_cluster_version(
            MonitoringOptions(namespace=OPENSHIFT_MONITORING_NS), "not-a-version", PROMETHEUS
        )


def test_serve_url_without_origin():
    result = serve_url(MonitoringOptions(), "example.com", [])
    assert result.scheme == "http"
    assert (result.netloc, result.path, result.query, result.fragment) == ("", "", "", "")


def test_serve_url_keeps_origin_path_query_fragment():
    options = MonitoringOptions(
        namespace="ns1", origin_url="https://app.apps.example.com/dash?x=1#top"
    )
    result = serve_url(options, "example.com", ["other.test", "apps.example.com"])
    assert result.scheme == "http"
    assert result.path == "/dash"
    assert result.query == "x=1"
    assert result.fragment == "top"


def test_serve_url_base_domain_mismatch():
    options = MonitoringOptions(namespace="ns1", origin_url="https://app.other.test/")
    with pytest.raises(MonitoringError, match="basedomain example.com"):
        serve_url(options, "example.com", ["app.other.test"])


def test_serve_url_requires_namespace():
    options = MonitoringOptions(namespace="", origin_url="https://app.example.com/")
    with pytest.raises(MonitoringError, match="namepace should not be blank"):
        serve_url(options, "example.com", ["example.com"])


def test_serve_url_requires_matching_route():
    options = MonitoringOptions(namespace="ns1", origin_url="https://app.example.com/")
    with pytest.raises(MonitoringError, match="namespace ns1"):
        serve_url(options, "example.com", ["apps.elsewhere.test"])


def test_run_proxy_rejects_empty_target():
    with pytest.raises(MonitoringError):
        run_proxy("", MonitoringOptions(), "", "token", False)


def test_run_proxy_returns_local_url_after_successful_check():
    addr = f"127.0.0.1:{get_free_port()}"
    options = MonitoringOptions(listen_addr=addr, namespace="ns1")
    response = mock.Mock(status_code=200, content=b"ok")
    with mock.patch("requests.request", return_value=response) as request:
        local_url = run_proxy(
            "https://host.example.com/backplane/thanos/abc", options, "", "token", False
        )
    assert local_url == f"http://{addr}"
    args, kwargs = request.call_args
    assert args[0] == "GET"
    assert args[1] == "https://host.example.com/backplane/thanos/abc/"
    assert kwargs["headers"]["Authorization"] == "Bearer token"
    assert kwargs["headers"]["X-Namespace"] == "ns1"


def test_run_proxy_reports_error_body():
    response = mock.Mock(status_code=403, content=b"forbidden by backplane")
    with mock.patch("requests.request", return_value=response):
        with pytest.raises(MonitoringError, match="forbidden by backplane"):
            run_proxy(
                "https://host.example.com/backplane/thanos/abc",
                MonitoringOptions(),
                "",
                "token",
                False,
            )


def test_run_proxy_invalid_listen_address():
    response = mock.Mock(status_code=200, content=b"")
    with mock.patch("requests.request", return_value=response):
        with pytest.raises(MonitoringError, match="listen tcp"):
            run_proxy(
                "https://host.example.com/x",
                MonitoringOptions(listen_addr="127.0.0.1:notaport"),
                "",
                "token",
                False,
            )