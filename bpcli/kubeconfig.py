"""Kubeconfig files: per-cluster configs, temporary configs and elevation reasons."""

from __future__ import annotations

import copy
import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .info import BACKPLANE_KUBECONFIG_ENV_NAME
from .utils import append_uniq_none_empty_string, ask_question_from_prompt

log = logging.getLogger(__name__)

ELEVATE_EXTENSION_NAME = "ElevateContext"
ELEVATE_EXTENSION_RETENTION_MINUTES = 20
ELEVATE_EXTENSION_RETENTION = timedelta(minutes=ELEVATE_EXTENSION_RETENTION_MINUTES)
ELEVATION_IMPERSONATE_USER = "backplane-cluster-admin"

_TEMP_KUBECONFIG_PREFIX = "config"

_DEFAULT_KUBECONFIG: dict[str, Any] = {
    "kind": "Config",
    "apiVersion": "v1",
    "preferences": {},
    "clusters": [
        {
            "name": "dummy_cluster",
            "cluster": {
                "server": "https://api-backplane.apps.something.com/backplane/cluster/configcluster",
            },
        }
    ],
    "contexts": [
        {
            "name": "default/test123/anonymous",
            "context": {"cluster": "dummy_cluster", "namespace": "default"},
        }
    ],
    "current-context": "default/test123/anonymous",
    "users": [],
}

PathLike = Union[str, "os.PathLike[str]"]


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _parse_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        return _as_utc(value)
    if not isinstance(value, str):
        raise ValueError(f"invalid time value: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(text))


@dataclass
class ElevateContext:
    """Elevation reasons kept in a kubeconfig context, with the time of last use."""

    reasons: list[str] = field(default_factory=list)
    last_used: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Return the extension document stored in the kubeconfig."""
        return {"reasons": list(self.reasons), "lastUsed": _as_utc(self.last_used).isoformat()}

    @classmethod
    def from_dict(cls, data: Any) -> "ElevateContext":
        """Build an ElevateContext from a stored extension document."""
        if isinstance(data, ElevateContext):
            return copy.deepcopy(data)
        if not isinstance(data, dict):
            raise ValueError("elevate context is not a mapping")
        reasons = data.get("reasons") or []
        if not isinstance(reasons, list) or not all(isinstance(r, str) for r in reasons):
            raise ValueError("elevate context reasons must be a list of strings")
        last_used = data.get("lastUsed")
        moment = (
            datetime(1, 1, 1, tzinfo=timezone.utc)
            if last_used is None
            else _parse_time(last_used)
        )
        return cls(reasons=list(reasons), last_used=moment)


def load_kubeconfig(path: PathLike) -> dict[str, Any]:
    """Read a kubeconfig file; an empty file gives an empty mapping."""
    with open(path, encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"kubeconfig {path} is not a mapping")
    return data


def write_kubeconfig(config: dict[str, Any], path: PathLike) -> None:
    """Write config to path, creating its directory when needed."""
    directory = os.path.dirname(os.fspath(path))
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(config, handle, default_flow_style=False, sort_keys=False)


def default_kubeconfig_path() -> str:
    """Return the kubeconfig file in use: from KUBECONFIG, else ~/.kube/config."""
    env = os.environ.get(BACKPLANE_KUBECONFIG_ENV_NAME, "")
    paths = [item for item in env.split(os.pathsep) if item]
    for item in paths:
        if os.path.exists(item):
            return item
    if paths:
        return paths[-1]
    return str(Path.home() / ".kube" / "config")


def default_kubeconfig() -> dict[str, Any]:
    """Return a copy of the placeholder kubeconfig."""
    return copy.deepcopy(_DEFAULT_KUBECONFIG)


def create_temp_kubeconfig(config: Optional[dict[str, Any]] = None) -> str:
    """Write config (or the placeholder) to a temporary file and point KUBECONFIG at it."""
    if config is None:
        config = default_kubeconfig()
    handle, path = tempfile.mkstemp(prefix=_TEMP_KUBECONFIG_PREFIX)
    os.close(handle)
    write_kubeconfig(config, path)
    os.environ[BACKPLANE_KUBECONFIG_ENV_NAME] = path
    return path


def remove_temp_kubeconfig() -> None:
    """Delete the file KUBECONFIG points at, if any."""
    path = os.environ.get(BACKPLANE_KUBECONFIG_ENV_NAME)
    if path:
        try:
            os.remove(path)
        except OSError:
            pass


def _named_entry(container: dict[str, Any], section: str, name: Any) -> Optional[dict[str, Any]]:
    for entry in container.get(section) or []:
        if isinstance(entry, dict) and entry.get("name") == name:
            return entry
    return None


def _current_context(config: dict[str, Any]) -> Optional[dict[str, Any]]:
    name = config.get("current-context")
    if not name:
        return None
    entry = _named_entry(config, "contexts", name)
    if entry is None:
        return None
    if not isinstance(entry.get("context"), dict):
        entry["context"] = {}
    return entry["context"]


class KubeConfigStore:
    """Keeps per-cluster kubeconfig files below a base directory (~/.kube by default)."""

    def __init__(self, base_path: Optional[PathLike] = None) -> None:
        self.base_path = base_path

    def _base(self) -> Path:
        if self.base_path:
            return Path(self.base_path)
        return Path.home() / ".kube"

    def create_cluster_kubeconfig(self, cluster_id: str, config: dict[str, Any]) -> str:
        """Write the cluster's kubeconfig, point KUBECONFIG at it and return its path."""
        directory = self._base() / cluster_id
        directory.mkdir(parents=True, exist_ok=True)
        filename = str(directory / "config")
        write_kubeconfig(config, filename)
        os.environ[BACKPLANE_KUBECONFIG_ENV_NAME] = filename
        return filename

    def remove_cluster_kubeconfig(self, cluster_id: str) -> None:
        """Delete the cluster's kubeconfig directory if it exists."""
        directory = self._base() / cluster_id
        if directory.exists():
            shutil.rmtree(directory, ignore_errors=True)

    def save_kubeconfig(
        self,
        cluster_id: str,
        config: dict[str, Any],
        is_multi: bool = False,
        kube_path: str = "",
    ) -> None:
        """Save config per cluster when is_multi, else to the default kubeconfig."""
        if is_multi:
            if kube_path:
                self.base_path = kube_path
            path = self.create_cluster_kubeconfig(cluster_id, config)
            if not kube_path:
                print(f"# Execute the following command to log into the cluster {cluster_id} ")
                print(f"export {BACKPLANE_KUBECONFIG_ENV_NAME}={path}")
        else:
            write_kubeconfig(config, default_kubeconfig_path())
        log.debug("Wrote Kube configuration")
        log.debug("%s", json.dumps(config, default=str))


def elevate_context_reasons(
    config: dict[str, Any], now: Optional[datetime] = None
) -> list[str]:
    """Return the elevation reasons of the current context if still within retention."""
    context = _current_context(config)
    if context is None:
        return []
    extension = _named_entry(context, "extensions", ELEVATE_EXTENSION_NAME)
    if extension is None or extension.get("extension") is None:
        return []
    try:
        elevate = ElevateContext.from_dict(extension.get("extension"))
    except (ValueError, TypeError):
        return []
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    if now - _as_utc(elevate.last_used) <= ELEVATE_EXTENSION_RETENTION:
        return list(elevate.reasons)
    return []


def add_elevation_reasons(config: dict[str, Any], reasons: list[str]) -> None:
    """Make the current user impersonate the cluster admin with the given reasons."""
    log.debug("Adding reason for backplane-cluster-admin elevation")
    context = _current_context(config)
    if context is None:
        raise ValueError("no current kubeconfig context")
    user_entry = _named_entry(config, "users", context.get("user", ""))
    if user_entry is None:
        raise ValueError("no current user information")
    if not isinstance(user_entry.get("user"), dict):
        user_entry["user"] = {}
    user = user_entry["user"]
    if not isinstance(user.get("as-user-extra"), dict):
        user["as-user-extra"] = {}
    user["as-user-extra"]["reason"] = list(reasons)
    user["as"] = ELEVATION_IMPERSONATE_USER


def save_elevate_context_reasons(
    config: dict[str, Any], reason: str = "", path: Optional[PathLike] = None
) -> list[str]:
    """Add reason to the stored elevation reasons, save the kubeconfig and return them."""
    context = _current_context(config)
    if context is None:
        raise ValueError("no current kubeconfig context")

    reasons = append_uniq_none_empty_string(elevate_context_reasons(config), reason)
    if not reasons:
        reasons = append_uniq_none_empty_string(
            reasons,
            ask_question_from_prompt(
                "Please enter a reason for elevation, it will be stored in current "
                f"context for {ELEVATE_EXTENSION_RETENTION_MINUTES} minutes : "
            ),
        )
    if not reasons:
        raise ValueError("please enter a reason for elevation")

    extensions = [
        entry
        for entry in context.get("extensions") or []
        if not (isinstance(entry, dict) and entry.get("name") == ELEVATE_EXTENSION_NAME)
    ]
    extensions.append(
        {
            "name": ELEVATE_EXTENSION_NAME,
            "extension": ElevateContext(reasons=list(reasons)).to_dict(),
        }
    )
    context["extensions"] = extensions

    write_kubeconfig(config, path if path is not None else default_kubeconfig_path())
    return reasons