"""Render Twist threads to markdown files with YAML front matter, and read them back."""

import logging
import re
import unicodedata
from datetime import datetime
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import frontmatter
import yaml

from twistsync.core.exceptions import ConfigError, InvalidFormatError, ThreadIdMissingError
from twistsync.core.types import ChannelDTO, CommentDTO, ThreadDTO

logger = logging.getLogger("twistsync")

WEB_BASE_URL = "https://twist.com"
MAX_HEADER_LEVEL = 6

_HEADER = re.compile(r"^(#{1,6})(?=\s|$)")
_FENCE = re.compile(r"^(```|~~~)")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase ASCII slug with single hyphens, e.g. "Welcome Back!" -> "welcome-back"."""
    ascii_text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    slug = _NON_ALNUM.sub("-", ascii_text.lower()).strip("-")
    return slug or "untitled"


def thread_file_name(thread: ThreadDTO) -> str:
    return f"{thread.id}_{slugify(thread.title)}.md"


def channel_dir_name(channel: ChannelDTO) -> str:
    return f"{channel.id}_{slugify(channel.name)}"


def thread_url(thread: ThreadDTO, web_base_url: str = WEB_BASE_URL) -> str:
    return (
        f"{web_base_url.rstrip('/')}/a/{thread.workspace_id}"
        f"/ch/{thread.channel_id}/t/{thread.id}/"
    )


def format_timestamp(ts: int, timezone: str = "UTC") -> str:
    """Format a unix timestamp as "YYYY-MM-DD HH:MM:SS" in the given timezone.

    Raises:
        ConfigError: Unknown timezone name
    """
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"Unknown timezone: {timezone}")
    return datetime.fromtimestamp(ts or 0, tz).strftime("%Y-%m-%d %H:%M:%S")


def shift_headers(text: str, levels: int = 1) -> str:
    """Shift markdown ATX headers by `levels`, leaving fenced code untouched.

    Resulting levels are clamped to 1..6.
    """
    if not text or levels == 0:
        return text or ""

    in_fence = False
    shifted = []
    for line in text.split("\n"):
        if _FENCE.match(line):
            in_fence = not in_fence
            shifted.append(line)
            continue
        match = None if in_fence else _HEADER.match(line)
        if match:
            level = min(MAX_HEADER_LEVEL, max(1, len(match.group(1)) + levels))
            line = "#" * level + line[match.end(1):]
        shifted.append(line)
    return "\n".join(shifted)


def comment_to_string(comment: CommentDTO, timezone: str = "UTC") -> str:
    """Comment block: level-1 header line, blank line, shifted body."""
    header = (
        f"# Comment by {comment.creator_name} ({comment.creator}) "
        f"at {format_timestamp(comment.posted_ts, timezone)} (Comment {comment.id})"
    )
    return f"{header}\n\n{shift_headers(comment.content.rstrip())}"


def render_front_matter(thread: ThreadDTO, timezone: str = "UTC",
                        web_base_url: str = WEB_BASE_URL) -> str:
    header = {
        "title": thread.title,
        "author": f"{thread.creator_name} ({thread.creator})",
        "created": format_timestamp(thread.posted_ts, timezone),
        "timezone": timezone,
        "thread_id": thread.id,
        "channel_id": thread.channel_id,
        "last_updated_ts": thread.last_updated_ts,
        "url": thread_url(thread, web_base_url),
    }
    post = frontmatter.Post("")
    post.metadata = header
    # dumps strips the trailing newline along with the empty content
    return frontmatter.dumps(post, sort_keys=False, width=1_000_000) + "\n"


def render_thread(thread: ThreadDTO, comments: list[CommentDTO], timezone: str = "UTC",
                  web_base_url: str = WEB_BASE_URL) -> str:
    """Render a thread and its comments (API order) into the thread file format."""
    parts = [render_front_matter(thread, timezone, web_base_url)]
    content = shift_headers(thread.content.rstrip())
    if content:
        parts.append(content + "\n")
    for comment in comments:
        parts.append(comment_to_string(comment, timezone) + "\n")
    return "\n".join(parts)


def write_thread_file(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8", newline="\n")
    logger.debug(f"Wrote thread file {path}")
    return path


def read_yaml_header(file_path: Path, n_max: int = 50) -> dict:
    """Read the front matter block from the first n_max lines of a thread file.

    Raises:
        InvalidFormatError: No opening/closing '---' or the block is not a mapping
    """
    lines = []
    with open(file_path, "r", encoding="utf-8") as f:
        for i, line in enumerate(f):
            if i >= n_max:
                break
            lines.append(line.rstrip("\r\n"))

    if not lines or lines[0] != "---":
        raise InvalidFormatError("Invalid markdown file format: no YAML header found.")

    end = _index_of(lines, "---", start=1)
    if end is None:
        raise InvalidFormatError(
            "Invalid markdown file format: no closing '---' for YAML header found."
        )

    try:
        header = yaml.safe_load("\n".join(lines[1:end]))
    except yaml.YAMLError as e:
        raise InvalidFormatError(f"Invalid YAML header in {file_path}: {e}")

    if header is None:
        return {}
    if not isinstance(header, dict):
        raise InvalidFormatError(f"YAML header in {file_path} is not a mapping")
    return header


def header_thread_id(header: dict, file_path: Path) -> int:
    """thread_id from a thread file's front matter.

    Raises:
        ThreadIdMissingError: No thread_id key
        InvalidFormatError: thread_id is not an integer
    """
    thread_id = header.get("thread_id")
    if thread_id is None:
        raise ThreadIdMissingError()
    if isinstance(thread_id, bool):
        raise InvalidFormatError(f"Invalid thread_id in {file_path}: {thread_id!r}")
    try:
        return int(thread_id)
    except (TypeError, ValueError, OverflowError):
        raise InvalidFormatError(f"Invalid thread_id in {file_path}: {thread_id!r}")


def read_lines(file_path: Path) -> list[str]:
    """File lines split on newlines only.

    Text mode already folds '\\r\\n' into '\\n'. Unlike str.splitlines, form
    feeds and Unicode line separators stay inside their line.
    """
    text = Path(file_path).read_text(encoding="utf-8")
    if text.endswith("\n"):
        text = text[:-1]
    return text.split("\n")


def _index_of(lines: list[str], value: str, start: int = 0) -> Optional[int]:
    for i in range(start, len(lines)):
        if lines[i] == value:
            return i
    return None
