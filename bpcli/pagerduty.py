"""PagerDuty incidents and the alerts that belong to them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import requests

log = logging.getLogger(__name__)

# PagerDuty incident statuses
STATUS_TRIGGERED = "triggered"
STATUS_ACKNOWLEDGED = "acknowledged"
STATUS_HIGH = "high"
STATUS_LOW = "low"

API_ENDPOINT = "https://api.pagerduty.com"
_RATE_LIMITED_STATUS = 429


@dataclass
class Alert:
    """The data of one alert."""

    id: str = ""
    name: str = ""
    incident_id: str = ""
    severity: str = ""
    status: str = ""
    created_at: Optional[datetime] = None
    web_url: str = ""
    cluster_id: str = ""
    cluster_name: str = ""


class PagerDutyError(Exception):
    """An error answered by the PagerDuty API."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def rate_limited(self) -> bool:
        """True when the API refused the call for exceeding its rate limit."""
        return self.status_code == _RATE_LIMITED_STATUS


class PagerDutyClient:
    """A minimal client of the PagerDuty REST API."""

    def __init__(self) -> None:
        self._session: Optional[requests.Session] = None

    def connect(self, auth_token: str) -> None:
        """Prepare an authenticated session for the API."""
        if not auth_token:
            raise ValueError("empty pagerduty token")
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Token token={auth_token}",
                "Accept": "application/vnd.pagerduty+json;version=2",
                "Content-Type": "application/json",
            }
        )
        self._session = session

    def _get(self, path: str) -> dict:
        if self._session is None:
            raise RuntimeError("pagerduty client is not connected")
        response = self._session.get(API_ENDPOINT + path)
        if response.status_code >= 300:
            raise PagerDutyError(
                f"HTTP response failed with status code {response.status_code}: "
                f"{response.text}",
                response.status_code,
            )
        return response.json()

    def list_incident_alerts(self, incident_id: str) -> list[dict]:
        """Return the alerts of an incident."""
        return self._get(f"/incidents/{incident_id}/alerts").get("alerts", [])

    def get_service(self, service_id: str) -> dict:
        """Return a service description."""
        return self._get(f"/services/{service_id}").get("service", {})


def _sprint(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_sprint(item) for item in value) + "]"
    return str(value)


class PagerDuty:
    """Reads incident alerts and the clusters they concern."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def get_incident_alerts(self, incident_id: str) -> list[Alert]:
        """Return all alerts of an incident."""
        try:
            incident_alerts = self.client.list_incident_alerts(incident_id)
        except PagerDutyError as err:
            if err.rate_limited:
                raise PagerDutyError("API rate limited", err.status_code) from err
            raise PagerDutyError(
                f"status code: {err.status_code}, error: {err}", err.status_code
            ) from err
        return [self.format_alert(alert) for alert in incident_alerts]

    def format_alert(self, alert: dict) -> Alert:
        """Turn an API alert document into an Alert."""
        result = Alert(
            incident_id=(alert.get("incident") or {}).get("id", ""),
            name=alert.get("summary", ""),
            status=alert.get("status", ""),
            web_url=alert.get("html_url", ""),
        )
        details = (alert.get("body") or {}).get("details")
        if not isinstance(details, dict):
            raise ValueError("alert body carries no details")

        notes = details.get("notes")
        if notes is not None:
            # Alerts for missing clusters carry the cluster in their notes.
            lines = _sprint(notes).split("\n")
            log.debug("alert notes: %s", lines)
            result.cluster_id = lines[0].replace("cluster_id: ", "", 1)
            result.cluster_name = _sprint(details.get("name")).split(".")[0]
        else:
            result.cluster_id = _sprint(details.get("cluster_id"))
            service_id = (alert.get("service") or {}).get("id", "")
            try:
                result.cluster_name = self.get_cluster_name(service_id)
            except (PagerDutyError, requests.RequestException):
                result.cluster_name = "N/A"

        if not result.cluster_id:
            result.cluster_id = "N/A"
        return result

    def get_cluster_name(self, service_id: str) -> str:
        """Return the cluster name that opens the service description."""
        service = self.client.get_service(service_id)
        return service.get("description", "").split(" ")[0]

    def get_cluster_info_from_incident(self, incident_id: str) -> Alert:
        """Return the first alert of an incident whose alerts all share one cluster."""
        alerts = self.get_incident_alerts(incident_id)
        if not alerts:
            raise LookupError("no alerts found for the given incident ID")
        first = alerts[0]
        if any(alert.cluster_id != first.cluster_id for alert in alerts):
            raise ValueError("not all alerts have the same cluster ID")
        return first


def new_with_token(auth_token: str) -> PagerDuty:
    """Return a PagerDuty reader connected with the given API token."""
    client = PagerDutyClient()
    client.connect(auth_token)
    return PagerDuty(client)