"""Access to JIRA issues, and lookup of issues in the OHSS project."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

JIRA_OHSS_PROJECT_KEY = "OHSS"
CUSTOM_FIELD_CLUSTER_ID = "customfield_12316349"


class IssueServiceDecorator:
    """Forwards issue operations to a service obtained from getter on each call.

    The getter is a callable that returns an issue service, or raises when no
    service can be created. Issues are JIRA REST documents held in dicts.
    """

    def __init__(self, getter: Callable[[], Any]) -> None:
        self.getter = getter

    def create(self, issue: dict) -> Any:
        """Create an issue."""
        return self.getter().create(issue)

    def get(self, issue_id: str, options: Optional[dict] = None) -> Any:
        """Fetch an issue by id or key."""
        return self.getter().get(issue_id, options)

    def update(self, issue: dict) -> Any:
        """Update an issue."""
        return self.getter().update(issue)

    def get_transitions(self, issue_id: str) -> Any:
        """Return the transitions available for an issue."""
        return self.getter().get_transitions(issue_id)

    def do_transition(self, ticket_id: str, transition_id: str) -> Any:
        """Apply a transition to an issue."""
        return self.getter().do_transition(ticket_id, transition_id)


@dataclass
class OHSSIssue:
    """An issue of the OHSS project."""

    id: str = ""
    key: str = ""
    title: str = ""
    project_key: str = ""
    web_url: str = ""
    cluster_id: str = ""


def _web_base(self_url: str) -> str:
    index = self_url.find(".com")
    return self_url if index < 0 else self_url[: index + len(".com")]


class OHSSService:
    """Looks up issues that belong to the OHSS project."""

    def __init__(self, issue_service: Any) -> None:
        self.issue_service = issue_service

    def get_issue(self, issue_id: str) -> OHSSIssue:
        """Return the OHSS issue with the given id."""
        if not issue_id:
            raise ValueError("empty issue Id")
        issue = self.issue_service.get(issue_id, None)
        if issue is None:
            raise LookupError(f"no matching issue for issueID:{issue_id}")
        fields = issue.get("fields")
        if fields is not None:
            project_key = (fields.get("project") or {}).get("key", "")
            if project_key != JIRA_OHSS_PROJECT_KEY:
                raise ValueError(f"issue {issue_id} is not belongs to OHSS project")
        return self._format_issue(issue)

    @staticmethod
    def _format_issue(issue: dict) -> OHSSIssue:
        result = OHSSIssue(id=issue.get("id", ""), key=issue.get("key", ""))
        fields = issue.get("fields")
        if fields is not None:
            if CUSTOM_FIELD_CLUSTER_ID in fields:
                result.cluster_id = str(fields[CUSTOM_FIELD_CLUSTER_ID])
            result.project_key = (fields.get("project") or {}).get("key", "")
            result.title = fields.get("summary", "")
        self_url = issue.get("self", "")
        if self_url:
            result.web_url = f"{_web_base(self_url)}/browse/{result.key}"
        return result