# bpcli

A library of building blocks for working with clusters reached through a
backplane API: connectivity health checks, per-cluster kubeconfig files,
elevation reasons, PagerDuty incident and OHSS ticket lookups, cluster
summaries and a local monitoring proxy.

It targets Python 3.10 and later and depends on `pyyaml` and `requests`.

## What is inside

| Module | Purpose |
| --- | --- |
| `bpcli.info` | Version discovery (`InfoService`, `BuildInfoService`, `upstream_readme_tagged`) |
| `bpcli.utils` | Small helpers: free ports, health probes, base-domain matching, `key=value` flag parsing, prompts, JWT claims, shell path checks, backplane API error parsing |
| `bpcli.rendering` | Plain and tab-aligned tables, indented JSON output |
| `bpcli.healthcheck` | VPN, proxy and backplane API connectivity checks (`HealthChecker`) |
| `bpcli.jira` | Issue service wrapper (`IssueServiceDecorator`) and OHSS ticket lookup (`OHSSService`) |
| `bpcli.pagerduty` | A small PagerDuty REST client and incident alert lookup (`PagerDuty`) |
| `bpcli.clusterinfo` | Printing a short summary of a cluster |
| `bpcli.kubeconfig` | Reading, writing and storing kubeconfig files, elevation reasons |
| `bpcli.cluster` | Working out the backplane cluster from a URL, a kubeconfig or a cluster key |
| `bpcli.monitoring` | Building and serving a local proxy to monitoring dashboards |

## Examples

### Small helpers

```python
from bpcli.utils import match_base_domain, parse_params_flag, get_context_nickname

match_base_domain("a.b.example.com", "example.com")   # True
match_base_domain("a.example.com.io", "example.com")  # False

parse_params_flag(["k1=v1", "k2=v2"])  # {"k1": "v1", "k2": "v2"}
parse_params_flag(["k1"])              # raises ValueError

get_context_nickname("default", "mycluster", "alice/extra")  # "default/mycluster/alice"
```

`format_api_error(status_code, status, body)` turns a backplane API error
response into a readable message; `parse_backplane_api_error` raises
`ValueError` when the body is not a valid error document.

### Version

```python
from bpcli.info import InfoService

InfoService(version="1.2.3").get_version()  # "1.2.3"
```

When no version is set, the installed distribution's metadata is
consulted (with a leading `v` removed), and `"unknown"` is returned when
neither is available.

### Connectivity checks

`HealthChecker` takes a callable that returns the backplane configuration,
a source of network interface names and an HTTP getter, so each part can
be swapped out. The configuration object must carry `proxy_url`,
`proxy_check_endpoint` and `vpn_check_endpoint`, and a
`check_api_connection()` method.

```python
from bpcli.healthcheck import HealthChecker, ConnectivityError, list_interfaces, http_get

checker = HealthChecker(load_config, list_interfaces, http_get)
try:
    checker.check_vpn_connectivity()
    proxy_url = checker.check_proxy_connectivity()
    checker.check_backplane_api_connectivity(proxy_url)
except ConnectivityError as exc:
    print("check failed:", exc)
```

A VPN counts as connected when an interface whose name starts with `tun`,
`tap`, `ppp`, `wg` or `utun` is present and the configured VPN check
endpoint answers with HTTP 200. `checker.run(check_vpn, check_proxy)`
runs the selected checks, prints their results and returns an exit
status (0 on success, 1 on failure).

### PagerDuty

```python
from bpcli.pagerduty import new_with_token

pd = new_with_token("token")
alert = pd.get_cluster_info_from_incident("incident-id-000")
print(alert.cluster_id, alert.cluster_name)
```

An incident without alerts raises `LookupError`; if its alerts refer to
different clusters, `ValueError` is raised. API failures surface as
`PagerDutyError`.

### OHSS tickets

`OHSSService` takes any object with a `get(issue_id, options)` method
returning a JIRA REST issue document as a dict (or `None`):

```python
from bpcli.jira import OHSSService

issue = OHSSService(issue_service).get_issue("OHSS-1000")
print(issue.key, issue.cluster_id, issue.web_url)
```

An empty id or an issue from another project raises `ValueError`; a
missing issue raises `LookupError`.

### Cluster summary

`print_cluster_info(cluster_id, ocm)` prints ID, name, state, region,
provider, hypershift flag, version, support status and access protection.
`ocm` must provide `get_cluster_info_by_id`, `setup_ocm_connection` and
`is_cluster_access_protection_enabled`; cluster facts are held in
`ClusterInfo`.

### Kubeconfig files

Kubeconfigs are handled as plain dicts read and written as YAML.

```python
from bpcli.kubeconfig import KubeConfigStore, default_kubeconfig

store = KubeConfigStore("/tmp/kube")
path = store.create_cluster_kubeconfig("test123", default_kubeconfig())
store.remove_cluster_kubeconfig("test123")
```

Creating a cluster kubeconfig also points `KUBECONFIG` at the new file.
`save_elevate_context_reasons` keeps elevation reasons in the current
context for 20 minutes, and `add_elevation_reasons` makes the current
user impersonate `backplane-cluster-admin`.

### Backplane cluster

```python
from bpcli.cluster import ClusterUtils

ClusterUtils().cluster_id_and_host_from_url(
    "https://api-backplane.apps.com/backplane/cluster/abcd123/"
)  # ("abcd123", "https://api-backplane.apps.com")
```

`ClusterUtils.from_config()` reads the server of the current kubeconfig
context; `from_cluster_key()` needs an OCM object with
`get_target_cluster` and a configuration getter.

### Monitoring

```python
from bpcli.monitoring import single_joining_slash, backplane_monitoring_url

single_joining_slash("/a/", "/b")  # "/a/b"
backplane_monitoring_url(
    "https://api.example.com/backplane/cluster/abc/", "prometheus"
)  # "https://api.example.com/backplane/prometheus/abc"
```

`run_proxy(target_url, options, user_name, access_token, is_grafana)`
checks that the target answers, then binds a local HTTP proxy that adds
the bearer token and the namespace, selector and port headers from
`MonitoringOptions`. It serves until interrupted only when
`options.keep_alive` is set.

## What it does not do

- There is no command-line program; everything is called from Python.
- It does not read the backplane configuration file or talk to OCM
  itself: configuration getters and OCM objects are supplied by the caller.
- It ships no JIRA client; `IssueServiceDecorator` and `OHSSService`
  work with an issue service you provide.
- The monitoring proxy does not open a browser; with `options.browser`
  set it only logs the URL to open.

## Tests

The test suite uses pytest and lives in `tests/`; install the `test`
extra to get it.