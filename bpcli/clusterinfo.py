"""Display of basic information about a target cluster."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

log = logging.getLogger(__name__)

_FIELD_WIDTH = 25


@dataclass
class ClusterInfo:
    """Basic facts about a cluster as reported by OCM."""

    id: str = ""
    name: str = ""
    state: str = ""
    region: str = ""
    cloud_provider: str = ""
    hypershift_enabled: bool = False
    openshift_version: str = ""
    limited_support_reason_count: int = 0


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _print_field(name: str, value: Any) -> None:
    print(f"{name:<{_FIELD_WIDTH}} {_format_value(value)}")


def print_cluster_info(cluster_id: str, ocm: Any) -> None:
    """Print basic information, support and access protection status of a cluster."""
    try:
        info = ocm.get_cluster_info_by_id(cluster_id)
    except Exception as err:
        raise RuntimeError(f"error retrieving cluster info: {err}") from err

    _print_field("Cluster ID:", info.id)
    _print_field("Cluster Name:", info.name)
    _print_field("Cluster Status:", info.state)
    _print_field("Cluster Region:", info.region)
    _print_field("Cluster Provider:", info.cloud_provider)
    _print_field("Hypershift Enabled:", info.hypershift_enabled)
    _print_field("Version:", info.openshift_version)
    limited_support_status(cluster_id, ocm)
    access_protection_status(cluster_id, ocm)

    log.info("Basic cluster information displayed.", extra={"clusterID": cluster_id})


def access_protection_status(cluster_id: str, ocm: Any) -> str:
    """Print and return whether access protection is enabled, or an error description."""
    try:
        connection = ocm.setup_ocm_connection()
    except Exception as err:
        log.error("Error setting up OCM connection: %s", err)
        return f"Error setting up OCM connection: {err}"
    try:
        try:
            enabled = ocm.is_cluster_access_protection_enabled(connection, cluster_id)
        except Exception as err:
            print("Error retrieving access protection status: ", err)
            return f"Error retrieving access protection status: {err}"
    finally:
        if connection is not None:
            connection.close()

    status = "Enabled" if enabled else "Disabled"
    _print_field("Access Protection:", status)
    return status


def limited_support_status(cluster_id: str, ocm: Any) -> str:
    """Print the support status and return the count of limited support reasons."""
    try:
        info = ocm.get_cluster_info_by_id(cluster_id)
    except Exception as err:
        return f"Error retrieving cluster info: {err}"
    status = "Limited Support" if info.limited_support_reason_count != 0 else "Fully Supported"
    print(f"{'Limited Support Status: ':<{_FIELD_WIDTH}} {status}")
    return str(info.limited_support_reason_count)