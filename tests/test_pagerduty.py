import pytest

from bpcli.pagerduty import (
    STATUS_ACKNOWLEDGED,
    STATUS_TRIGGERED,
    Alert,
    PagerDuty,
    PagerDutyClient,
    PagerDutyError,
    new_with_token,
)

INCIDENT_ID = "incident-id-000"
CLUSTER_ID = "cluster-id-000"
SERVICE_ID = "service-id-000"
CLUSTER_NAME = "test-cluster-name"
ALERT_NAME = "alert-error-budget"


def alert(incident_id, service_id, name, cluster_id, status):
    details = {"cluster_id": cluster_id}
    if name == "CHGM":
        details = {"notes": ["cluster_id: " + cluster_id]}
    return {
        "incident": {"id": incident_id},
        "service": {"id": service_id},
        "summary": name,
        "body": {"details": details},
        "status": status,
    }


class FakeClient:
    def __init__(self, alerts=None, service=None, error=None, service_error=None):
        self.alerts = alerts or []
        self.service = service or {"description": CLUSTER_NAME}
        self.error = error
        self.service_error = service_error
        self.service_calls = []

    def list_incident_alerts(self, incident_id):
        if self.error is not None:
            raise self.error
        return self.alerts

    def get_service(self, service_id):
        self.service_calls.append(service_id)
        if self.service_error is not None:
            raise self.service_error
        return self.service


def test_returns_incident_alerts():
    client = FakeClient([alert(INCIDENT_ID, SERVICE_ID, ALERT_NAME, CLUSTER_ID, STATUS_TRIGGERED)])
    alerts = PagerDuty(client).get_incident_alerts(INCIDENT_ID)
    assert len(alerts) == 1
    assert client.service_calls == [SERVICE_ID]


def test_returns_cluster_id_for_incident():
    client = FakeClient([alert(INCIDENT_ID, SERVICE_ID, ALERT_NAME, CLUSTER_ID, STATUS_TRIGGERED)])
    info = PagerDuty(client).get_cluster_info_from_incident(INCIDENT_ID)
    assert info.cluster_id == CLUSTER_ID


def test_no_alerts_is_an_error():
    with pytest.raises(LookupError, match="no alerts found for the given incident ID"):
        PagerDuty(FakeClient([])).get_cluster_info_from_incident(INCIDENT_ID)


def test_formats_alert():
    client = FakeClient()
    formatted = PagerDuty(client).format_alert(
        alert(INCIDENT_ID, SERVICE_ID, ALERT_NAME, CLUSTER_ID, STATUS_TRIGGERED)
    )
    assert formatted.cluster_id == CLUSTER_ID
    assert formatted.cluster_name == CLUSTER_NAME
    assert formatted.name == ALERT_NAME
    assert formatted.incident_id == INCIDENT_ID
    assert formatted.status == STATUS_TRIGGERED
    assert client.service_calls == [SERVICE_ID]


def test_first_cluster_id_for_multiple_alerts():
    client = FakeClient(
        [
            alert(INCIDENT_ID, SERVICE_ID, ALERT_NAME, CLUSTER_ID, STATUS_TRIGGERED),
            alert("incident-id-001", SERVICE_ID, ALERT_NAME, CLUSTER_ID, STATUS_TRIGGERED),
        ]
    )
    info = PagerDuty(client).get_cluster_info_from_incident(INCIDENT_ID)
    assert info.cluster_id == CLUSTER_ID
    assert info.incident_id == INCIDENT_ID
    assert len(client.service_calls) == 2


def test_mismatched_cluster_ids_are_an_error():
    client = FakeClient(
        [
            alert(INCIDENT_ID, SERVICE_ID, ALERT_NAME, CLUSTER_ID, STATUS_TRIGGERED),
            alert("incident-id-001", SERVICE_ID, ALERT_NAME, "cluster-id-001", STATUS_ACKNOWLEDGED),
        ]
    )
    with pytest.raises(ValueError) as info:
        PagerDuty(client).get_cluster_info_from_incident(INCIDENT_ID)
    assert str(info.value) == "not all alerts have the same cluster ID"
    assert len(client.service_calls) == 2


def test_cluster_id_for_chgm_incident():
    client = FakeClient([alert(INCIDENT_ID, SERVICE_ID, "CHGM", CLUSTER_ID, STATUS_TRIGGERED)])
    info = PagerDuty(client).get_cluster_info_from_incident(INCIDENT_ID)
    assert CLUSTER_ID in info.cluster_id
    assert client.service_calls == []


def test_chgm_cluster_name_from_details_name():
    chgm = {
        "incident": {"id": INCIDENT_ID},
        "service": {"id": SERVICE_ID},
        "summary": "CHGM",
        "status": STATUS_TRIGGERED,
        "body": {"details": {"notes": "cluster_id: abc\nmore", "name": "mycluster.example.com"}},
    }
    formatted = PagerDuty(FakeClient()).format_alert(chgm)
    assert formatted.cluster_id == "abc"
    assert formatted.cluster_name == "mycluster"


def test_missing_service_gives_na_cluster_name():
    client = FakeClient(service_error=PagerDutyError("not found", 404))
    formatted = PagerDuty(client).format_alert(
        alert(INCIDENT_ID, SERVICE_ID, ALERT_NAME, CLUSTER_ID, STATUS_TRIGGERED)
    )
    assert formatted.cluster_name == "N/A"
    assert formatted.cluster_id == CLUSTER_ID


def test_empty_cluster_id_becomes_na():
    formatted = PagerDuty(FakeClient()).format_alert(
        alert(INCIDENT_ID, SERVICE_ID, ALERT_NAME, "", STATUS_TRIGGERED)
    )
    assert formatted.cluster_id == "N/A"


def test_rate_limited_error():
    client = FakeClient(error=PagerDutyError("too many", 429))
    with pytest.raises(PagerDutyError, match="API rate limited"):
        PagerDuty(client).get_incident_alerts(INCIDENT_ID)


def test_api_error_carries_status_code():
    client = FakeClient(error=PagerDutyError("forbidden", 403))
    with pytest.raises(PagerDutyError) as info:
        PagerDuty(client).get_incident_alerts(INCIDENT_ID)
    assert str(info.value) == "status code: 403, error: forbidden"
    assert info.value.status_code == 403


def test_cluster_name_is_first_word_of_description():
    client = FakeClient(service={"description": "prod-cluster hosted on aws"})
    assert PagerDuty(client).get_cluster_name(SERVICE_ID) == "prod-cluster"


def test_empty_token_is_rejected():
    with pytest.raises(ValueError, match="empty pagerduty token"):
        new_with_token("")


def test_unconnected_client_refuses_calls():
    with pytest.raises(RuntimeError):
        PagerDutyClient().list_incident_alerts(INCIDENT_ID)


def test_new_with_token_returns_reader():
    reader = new_with_token("token")
    assert isinstance(reader.client, PagerDutyClient)
    assert reader.client._session.headers["Authorization"] == "Token token=token"


def test_alert_defaults():
    assert Alert() == Alert(id="", name="", cluster_id="", created_at=None)