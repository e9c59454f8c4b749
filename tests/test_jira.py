import pytest

from bpcli.jira import (
    CUSTOM_FIELD_CLUSTER_ID,
    JIRA_OHSS_PROJECT_KEY,
    IssueServiceDecorator,
    OHSSIssue,
    OHSSService,
)

TEST_OHSS_ID = "OHSS-1000"


class FakeIssueService:
    def __init__(self, issue=None):
        self.issue = issue
        self.calls = []

    def get(self, issue_id, options):
        self.calls.append(("get", issue_id, options))
        return self.issue

    def create(self, issue):
        self.calls.append(("create", issue))
        return {"id": "1", **issue}

    def update(self, issue):
        self.calls.append(("update", issue))
        return issue

    def get_transitions(self, issue_id):
        self.calls.append(("get_transitions", issue_id))
        return [{"id": "11", "name": "Done"}]

    def do_transition(self, ticket_id, transition_id):
        self.calls.append(("do_transition", ticket_id, transition_id))
        return 204


def ohss_issue(project_key=JIRA_OHSS_PROJECT_KEY, **extra):
    return {"id": TEST_OHSS_ID, "fields": {"project": {"key": project_key}}, **extra}


def test_returns_one_issue():
    service = FakeIssueService(ohss_issue())
    issue = OHSSService(service).get_issue(TEST_OHSS_ID)
    assert issue.id == TEST_OHSS_ID
    assert issue.project_key == JIRA_OHSS_PROJECT_KEY
    assert service.calls == [("get", TEST_OHSS_ID, None)]


def test_error_for_issue_not_in_ohss_project():
    service = FakeIssueService(ohss_issue("NON-OHSS"))
    with pytest.raises(ValueError) as info:
        OHSSService(service).get_issue(TEST_OHSS_ID)
    assert str(info.value) == "issue OHSS-1000 is not belongs to OHSS project"


def test_error_for_empty_issue():
    with pytest.raises(LookupError) as info:
        OHSSService(FakeIssueService(None)).get_issue(TEST_OHSS_ID)
    assert str(info.value) == "no matching issue for issueID:OHSS-1000"


def test_error_for_empty_issue_id():
    service = FakeIssueService(ohss_issue())
    with pytest.raises(ValueError, match="empty issue Id"):
        OHSSService(service).get_issue("")
    assert service.calls == []


def test_formats_web_url_title_and_cluster_id():
    issue = {
        "id": "42",
        "key": TEST_OHSS_ID,
        "self": "https://issues.example.com/rest/api/2/issue/42",
        "fields": {
            "project": {"key": JIRA_OHSS_PROJECT_KEY},
            "summary": "Cluster is down",
            CUSTOM_FIELD_CLUSTER_ID: "abc123",
        },
    }
    result = OHSSService(FakeIssueService(issue)).get_issue(TEST_OHSS_ID)
    assert result == OHSSIssue(
        id="42",
        key=TEST_OHSS_ID,
        title="Cluster is down",
        project_key=JIRA_OHSS_PROJECT_KEY,
        web_url="https://issues.example.com/browse/OHSS-1000",
        cluster_id="abc123",
    )


def test_issue_without_fields_is_accepted():
    result = OHSSService(FakeIssueService({"id": "7", "key": "K-7"})).get_issue("K-7")
    assert result == OHSSIssue(id="7", key="K-7")


def test_decorator_delegates_every_operation():
    service = FakeIssueService({"id": "1"})
    decorator = IssueServiceDecorator(lambda: service)
    assert decorator.get("A-1", {"expand": "x"}) == {"id": "1"}
    assert decorator.create({"key": "A-2"}) == {"id": "1", "key": "A-2"}
    assert decorator.update({"key": "A-3"}) == {"key": "A-3"}
    assert decorator.get_transitions("A-4") == [{"id": "11", "name": "Done"}]
    assert decorator.do_transition("A-5", "11") == 204
    assert [call[0] for call in service.calls] == [
        "get", "create", "update", "get_transitions", "do_transition",
    ]


def test_decorator_propagates_getter_error():
    def failing_getter():
        raise RuntimeError("JIRA token is not defined")

    decorator = IssueServiceDecorator(failing_getter)
    with pytest.raises(RuntimeError, match="JIRA token is not defined"):
        decorator.get_transitions("A-1")