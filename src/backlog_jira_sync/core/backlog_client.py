"""Backlog.md task-file client implementing the ``LocalTaskSource`` protocol.

Each task is one Markdown file named ``<id> - <Title>.md`` inside the
tasks directory::

    ---
    id: task-12
    title: Fix the login page
    status: In Progress
    assignee:
      - '@alice'
    created_date: '2025-06-01 10:00'
    labels: [frontend]
    priority: high
    ---

    ## Description

    <!-- SECTION:DESCRIPTION:BEGIN -->
    Text...
    <!-- SECTION:DESCRIPTION:END -->

Front matter keys this client does not manage (``dependencies``,
``milestone`` ...) and body sections other than the description are
preserved on every rewrite.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from ..file_handler import read_file_with_encoding, write_file
from ..sync.errors import NotFoundError, SyncError
from ..sync.models import LocalTask

logger = logging.getLogger(__name__)

_FRONT_MATTER = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)(.*)\Z", re.S)
_TASK_FILE = re.compile(r"^([A-Za-z][A-Za-z0-9_]*-\d+(?:\.\d+)*)(?: - .*)?\.md$")
_DESCRIPTION_SENTINEL = re.compile(
    r"## Description[ \t]*\n+<!-- SECTION:DESCRIPTION:BEGIN -->[ \t]*\n"
    r"(.*?)<!-- SECTION:DESCRIPTION:END -->",
    re.S | re.I,
)
_DESCRIPTION_LEGACY = re.compile(
    r"## Description[ \t]*\n(.*?)(?=\n## |\Z)", re.S | re.I
)
_UNSAFE_FILENAME = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

DATE_FORMAT = "%Y-%m-%d %H:%M"


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(v) for v in value]


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Split a task file into its front matter mapping and Markdown body.

    Raises:
        ValueError: If the front matter is missing or not a mapping.
    """
    match = _FRONT_MATTER.match(text.lstrip("\ufeff"))
    if match is None:
        raise ValueError("missing YAML front matter")
    data = yaml.safe_load(match.group(1)) or {}
    if not isinstance(data, dict):
        raise ValueError("front matter is not a mapping")
    return data, match.group(2)


def extract_description(body: str) -> str | None:
    """Return the text of the ``## Description`` section, if any."""
    match = _DESCRIPTION_SENTINEL.search(body) or _DESCRIPTION_LEGACY.search(body)
    if match is None:
        return None
    return match.group(1).strip("\n") or None


def replace_description(body: str, description: str | None) -> str:
    """Return *body* with its description section set to *description*."""
    text = (description or "").replace("\r\n", "\n").rstrip()
    content = f"{text}\n" if text else ""
    block = (
        "## Description\n\n<!-- SECTION:DESCRIPTION:BEGIN -->\n"
        f"{content}<!-- SECTION:DESCRIPTION:END -->"
    )
    for pattern in (_DESCRIPTION_SENTINEL, _DESCRIPTION_LEGACY):
        match = pattern.search(body)
        if match is not None:
            return body[: match.start()] + block + body[match.end():]
    rest = body.lstrip("\n")
    return f"{block}\n\n{rest}" if rest else f"{block}\n"


def task_filename(task_id: str, title: str) -> str:
    """Build the ``<id> - <Title>.md`` filename Backlog.md uses."""
    safe_title = _UNSAFE_FILENAME.sub("", title).strip() or "Untitled"
    return f"{task_id} - {safe_title}.md"


class BacklogClient:
    """Read and update Backlog.md task files under *tasks_dir*."""

    def __init__(self, tasks_dir: Path):
        self.tasks_dir = Path(tasks_dir)

    # ------------------------------------------------------------------
    # File lookup
    # ------------------------------------------------------------------

    def _iter_task_files(self):
        if not self.tasks_dir.is_dir():
            return
        for path in sorted(self.tasks_dir.glob("*.md")):
            match = _TASK_FILE.match(path.name)
            if match is not None:
                yield match.group(1), path

    def find_task_file(self, task_id: str) -> Path:
        """Return the file of *task_id* (id match is case-insensitive).

        Raises:
            NotFoundError: If no file belongs to *task_id*.
        """
        wanted = task_id.casefold()
        for file_id, path in self._iter_task_files():
            if file_id.casefold() == wanted:
                return path
        raise NotFoundError(
            f"Task {task_id} not found in {self.tasks_dir}", task_id
        )

    def _read(self, task_id: str) -> tuple[Path, dict[str, Any], str, str]:
        path = self.find_task_file(task_id)
        content, encoding = read_file_with_encoding(path)
        try:
            front, body = split_front_matter(content)
        except (ValueError, yaml.YAMLError) as exc:
            raise SyncError(f"Malformed task file {path}: {exc}", task_id) from exc
        return path, front, body, encoding

    # ------------------------------------------------------------------
    # LocalTaskSource protocol
    # ------------------------------------------------------------------

    def get_item(self, item_id: str) -> LocalTask:
        """Read task *item_id* from its file."""
        _, front, body, _ = self._read(item_id)
        return LocalTask(
            id=str(front.get("id") or item_id),
            title=_as_str(front.get("title")) or "",
            description=extract_description(body),
            status=_as_str(front.get("status")) or "",
            assignee=_as_list(front.get("assignee")),
            priority=_as_str(front.get("priority")),
            labels=_as_list(front.get("labels")),
            created=_as_str(front.get("created_date")),
            updated=_as_str(front.get("updated_date")),
        )

    def update_item(self, item_id: str, updates: dict[str, Any]) -> LocalTask:
        """Apply canonical field *updates* to the task file.

        The file is rewritten atomically and renamed when the title
        changes.  ``updated_date`` is stamped with the current time.
        """
        path, front, body, encoding = self._read(item_id)

        for field, value in updates.items():
            match field:
                case "title":
                    front["title"] = value or ""
                case "status":
                    front["status"] = value or ""
                case "assignee":
                    front["assignee"] = [f"@{value}"] if value else []
                case "priority":
                    if value:
                        front["priority"] = value
                    else:
                        front.pop("priority", None)
                case "labels":
                    front["labels"] = list(value or [])
                case "description":
                    body = replace_description(body, value)
                case _:
                    logger.debug("Ignoring unsupported field '%s'", field)

        front["updated_date"] = datetime.now().strftime(DATE_FORMAT)
        text = (
            "---\n"
            + yaml.safe_dump(
                front, sort_keys=False, allow_unicode=True, default_flow_style=False
            )
            + "---\n\n"
            + body.lstrip("\n")
        )

        target = path
        if "title" in updates:
            target = path.with_name(
                task_filename(str(front.get("id") or item_id), front["title"])
            )
        write_file(target, text, encoding)
        if target != path:
            path.unlink()
            logger.info("Renamed %s -> %s", path.name, target.name)

        logger.debug("Updated task %s fields: %s", item_id, sorted(updates))
        return self.get_item(item_id)

    def list_task_ids(self) -> list[str]:
        """Return the ids of all task files, in filename order."""
        return [task_id for task_id, _ in self._iter_task_files()]
