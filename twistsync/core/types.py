"""Data Transfer Objects for twistsync."""

import json
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union


@dataclass
class ChannelDTO:
    """Twist channel data transfer object."""

    id: int
    name: str
    workspace_id: Optional[int] = None
    archived: bool = False


@dataclass
class ThreadDTO:
    """Twist thread data transfer object."""

    id: int
    title: str
    content: str = ""                # markdown body
    creator: Optional[int] = None    # creator user id
    creator_name: str = ""
    channel_id: Optional[int] = None
    workspace_id: Optional[int] = None
    posted_ts: int = 0
    last_updated_ts: int = 0


@dataclass
class CommentDTO:
    """Twist comment data transfer object.

    id is None only when a mutation response came back without one.
    """

    id: Optional[int]
    thread_id: Optional[int] = None
    creator: Optional[int] = None
    creator_name: str = ""
    content: str = ""
    posted_ts: int = 0


@dataclass
class ThreadQuery:
    """Page request for threads/get."""

    channel_id: int
    limit: int = 20
    order_by: str = "desc"
    before_id: Optional[int] = None
    newer_than_ts: Optional[int] = None
    older_than_ts: Optional[int] = None

    def to_params(self) -> dict:
        """Query-string parameters, omitting unset filters."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass
class SyncOptions:
    """Options accepted by the channel/workspace sync."""

    thread_limit: int = 20           # per channel; API ceiling is 500
    newer_than_ts: Optional[int] = None
    older_than_ts: Optional[int] = None
    force: bool = False
    timezone: str = "UTC"


@dataclass
class Settings:
    """Resolved runtime settings passed explicitly to services."""

    token: str
    workspace_id: int
    workspace_dir: Path
    timezone: str = "UTC"
    api_base_url: str = "https://api.twist.com/api/v3/"
    web_base_url: str = "https://twist.com"


@dataclass
class CommentSection:
    """Line span of a draft/edit section (0-based, inclusive)."""

    start_line: int
    end_line: int


@dataclass
class ParsedSection:
    """Parsed draft/edit section plus any non-fatal diagnostics."""

    params: dict = field(default_factory=dict)
    content: str = ""
    warnings: list[str] = field(default_factory=list)


@dataclass
class ThreadFileInfo:
    """Existing local thread file, as indexed from its name and front matter."""

    thread_id: int
    path: Path
    last_updated_ts: Optional[int] = None


class SyncAction(Enum):
    CREATE = "create"
    REWRITE = "rewrite"
    NOOP = "noop"


@dataclass
class ReconcileResult:
    """Outcome of reconciling one remote thread with its local file."""

    action: SyncAction
    path: Optional[Path] = None      # file written, None for NOOP


def _form_value(value: Any) -> Union[str, int]:
    """Encode a value for a form body (lists and booleans as JSON)."""
    if isinstance(value, (list, tuple, dict, bool)):
        return json.dumps(value)
    return value


@dataclass
class AddCommentParams:
    """Typed parameters for comments/add."""

    ALLOWED = (
        "recipients", "direct_mentions", "direct_group_mentions",
        "groups", "mark_thread_position", "thread_action",
    )

    thread_id: int
    content: str
    recipients: Any = "EVERYONE_IN_THREAD"   # user ids, "EVERYONE" or "EVERYONE_IN_THREAD"
    direct_mentions: Optional[list] = None
    direct_group_mentions: Optional[list] = None
    groups: Optional[list] = None
    mark_thread_position: bool = True
    thread_action: Optional[str] = None      # "close" | "reopen"

    @classmethod
    def from_params(cls, thread_id: int, content: str, params: dict) -> "AddCommentParams":
        """Build from a section's params; keys outside ALLOWED are ignored."""
        known = {k: v for k, v in params.items() if k in cls.ALLOWED and v is not None}
        return cls(thread_id=thread_id, content=content, **known)

    def to_form(self) -> dict:
        form = {"thread_id": self.thread_id, "content": self.content}
        for name in self.ALLOWED:
            value = getattr(self, name)
            if value is not None:
                form[name] = _form_value(value)
        return form


@dataclass
class UpdateCommentParams:
    """Typed parameters for comments/update."""

    ALLOWED = ("direct_mentions", "direct_group_mentions")

    id: int
    content: str
    direct_mentions: Optional[list] = None
    direct_group_mentions: Optional[list] = None

    @classmethod
    def from_params(cls, content: str, params: dict) -> "UpdateCommentParams":
        known = {k: v for k, v in params.items() if k in cls.ALLOWED and v is not None}
        return cls(id=params["id"], content=content, **known)

    def to_form(self) -> dict:
        form = {"id": self.id, "content": self.content}
        for name in self.ALLOWED:
            value = getattr(self, name)
            if value is not None:
                form[name] = _form_value(value)
        return form
