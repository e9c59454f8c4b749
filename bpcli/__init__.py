"""Building blocks for backplane-managed clusters: health checks, kubeconfigs, lookups and a monitoring proxy."""

__version__ = "0.1.0"

__all__ = [
    "cluster",
    "clusterinfo",
    "healthcheck",
    "info",
    "jira",
    "kubeconfig",
    "monitoring",
    "pagerduty",
    "rendering",
    "utils",
]