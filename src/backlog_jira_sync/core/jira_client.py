import logging
import threading
from typing import Any

import requests

from ..config import Config
from ..sync.errors import NotFoundError, TransportError
from ..sync.models import RemoteIssue, Transition
from ..validators import validate_issue_key

logger = logging.getLogger(__name__)

API_PREFIX = "/rest/api/2"

_ISSUE_FIELDS = (
    "summary,description,status,issuetype,assignee,reporter,"
    "priority,labels,created,updated"
)


def _name(value: dict | None, attr: str = "name") -> str | None:
    if not value:
        return None
    return value.get(attr)


def _user_handle(user: dict | None) -> str | None:
    """Spell a Jira user the way Backlog.md names assignees.

    Server and Data Center expose a username; Cloud only exposes the
    email local part when the address is visible.  The display name is
    the last resort.
    """
    if not user:
        return None
    if user.get("name"):
        return user["name"]
    email = user.get("emailAddress") or ""
    if "@" in email:
        return email.split("@", 1)[0]
    return user.get("displayName")


class JiraClient:
    """Jira REST API v2 client implementing the ``RemoteTracker`` protocol.

    Each worker thread gets its own ``requests.Session``; sessions are not
    safe to share between threads.
    """

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.base_url = f"{config.jira_url.rstrip('/')}{API_PREFIX}"
        self._account_ids: dict[str, str | None] = {}
        self._account_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.auth = (self.config.email, self.config.api_token)
        session.verify = not self.config.insecure
        session.headers.update(
            {"Accept": "application/json", "Content-Type": "application/json"}
        )
        return session

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
        item_id: str | None = None,
    ) -> Any:
        """Send one request and decode the JSON response.

        Raises:
            NotFoundError: On HTTP 404.
            TransportError: On timeouts, connection failures and any other
                HTTP error.  Client errors other than 429 are not
                retryable.
        """
        url = f"{self.base_url}{path}"
        try:
            response = self._get_session().request(
                method,
                url,
                params=params,
                json=payload,
                timeout=(self.config.connect_timeout, self.config.read_timeout),
            )
        except requests.Timeout as exc:
            raise TransportError(
                f"Jira request timed out: {method} {path}", item_id
            ) from exc
        except requests.RequestException as exc:
            raise TransportError(
                f"Jira request failed: {method} {path}: {exc}", item_id
            ) from exc

        status = response.status_code
        if status == 404:
            raise NotFoundError(f"Jira resource not found: {path}", item_id)
        if status >= 400:
            retryable = status == 429 or status >= 500
            raise TransportError(
                f"Jira returned HTTP {status} for {method} {path}: "
                f"{self._error_text(response)}",
                item_id,
                status_code=status,
                retryable=retryable,
            )

        logger.debug("%s %s -> %d", method, path, status)
        if status == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_text(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        messages = list(body.get("errorMessages") or [])
        messages.extend(
            f"{field}: {msg}" for field, msg in (body.get("errors") or {}).items()
        )
        return "; ".join(messages) or response.reason or ""

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_issue(data: dict) -> RemoteIssue:
        fields = data.get("fields") or {}
        return RemoteIssue(
            key=data["key"],
            id=str(data.get("id", "")),
            summary=fields.get("summary") or "",
            description=fields.get("description"),
            status=_name(fields.get("status")) or "",
            issue_type=_name(fields.get("issuetype")) or "",
            assignee=_user_handle(fields.get("assignee")),
            reporter=_name(fields.get("reporter"), "displayName"),
            priority=_name(fields.get("priority")),
            labels=list(fields.get("labels") or []),
            created=fields.get("created"),
            updated=fields.get("updated"),
        )

    def _build_fields(
        self, updates: dict[str, Any], item_id: str | None = None
    ) -> dict[str, Any]:
        """Translate canonical field updates into Jira ``fields``."""
        fields: dict[str, Any] = {}
        for field, value in updates.items():
            match field:
                case "title":
                    fields["summary"] = value or ""
                case "description":
                    fields["description"] = value or ""
                case "priority":
                    fields["priority"] = (
                        {"name": value.capitalize()} if value else None
                    )
                case "labels":
                    fields["labels"] = [
                        label.replace(" ", "-") for label in (value or [])
                    ]
                case "assignee":
                    if not value:
                        fields["assignee"] = None
                        continue
                    account_id = self._find_account_id(value, item_id)
                    if account_id is None:
                        logger.warning(
                            "No Jira user matches assignee '%s'; "
                            "assignee left unchanged",
                            value,
                        )
                        continue
                    fields["assignee"] = {"accountId": account_id}
                case "status":
                    # Status moves through workflow transitions only.
                    continue
                case _:
                    logger.debug("Ignoring unsupported field '%s'", field)
        return fields

    def _find_account_id(
        self, query: str, item_id: str | None = None
    ) -> str | None:
        """Look up a user by display name or email, with caching."""
        with self._account_lock:
            if query in self._account_ids:
                return self._account_ids[query]
        users = self._request(
            "GET", "/user/search", params={"query": query}, item_id=item_id
        ) or []
        account_id = users[0].get("accountId") if users else None
        with self._account_lock:
            self._account_ids[query] = account_id
        return account_id

    # ------------------------------------------------------------------
    # RemoteTracker protocol
    # ------------------------------------------------------------------

    def get_item(self, key: str) -> RemoteIssue:
        """Fetch issue *key*."""
        is_valid, error = validate_issue_key(key)
        if not is_valid:
            raise NotFoundError(error, key)
        data = self._request(
            "GET", f"/issue/{key}", params={"fields": _ISSUE_FIELDS}, item_id=key
        )
        return self._parse_issue(data)

    def create_item(
        self,
        project_key: str,
        issue_type: str,
        title: str,
        fields: dict[str, Any],
    ) -> RemoteIssue:
        """Create an issue and return it as stored by Jira.

        Args:
            project_key: Project to create the issue in.
            issue_type: Issue type name (e.g. ``Task``).
            title: Issue summary.
            fields: Canonical non-status fields (description, assignee,
                priority, labels).
        """
        payload_fields = self._build_fields(fields)
        payload_fields.update(
            {
                "project": {"key": project_key},
                "issuetype": {"name": issue_type},
                "summary": title,
            }
        )
        created = self._request("POST", "/issue", payload={"fields": payload_fields})
        logger.info("Created Jira issue %s", created["key"])
        return self.get_item(created["key"])

    def update_item(self, key: str, updates: dict[str, Any]) -> None:
        """Apply canonical field *updates* to issue *key*."""
        fields = self._build_fields(updates, key)
        if not fields:
            return
        self._request(
            "PUT", f"/issue/{key}", payload={"fields": fields}, item_id=key
        )
        logger.debug("Updated %s fields: %s", key, sorted(fields))

    def list_transitions(self, key: str) -> list[Transition]:
        """Return workflow transitions available on *key*."""
        data = self._request("GET", f"/issue/{key}/transitions", item_id=key)
        return [
            Transition(
                id=str(t["id"]),
                name=t.get("name", ""),
                to_status=_name(t.get("to")) or t.get("name", ""),
            )
            for t in (data or {}).get("transitions", [])
        ]

    def apply_transition(
        self, key: str, transition_id: str, comment: str | None = None
    ) -> None:
        """Move *key* through transition *transition_id*."""
        payload: dict[str, Any] = {"transition": {"id": transition_id}}
        if comment:
            payload["update"] = {"comment": [{"add": {"body": comment}}]}
        self._request(
            "POST", f"/issue/{key}/transitions", payload=payload, item_id=key
        )

    # ------------------------------------------------------------------
    # Health checks
    # ------------------------------------------------------------------

    def validate_connection(self) -> str:
        """Check credentials; returns the authenticated user's display name."""
        data = self._request("GET", "/myself") or {}
        return data.get("displayName") or data.get("emailAddress") or ""

    def get_project(self, project_key: str) -> dict[str, Any]:
        """Fetch project metadata (raises ``NotFoundError`` if missing)."""
        return self._request("GET", f"/project/{project_key}")
