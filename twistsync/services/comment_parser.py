"""Draft/edit comment section parsing.

A thread file may end with a section such as::

    # DRAFT COMMENT

    ```yaml
    recipients: [123, 456]
    ```

    Comment body in markdown.

The section runs from its header line to the end of the file. Only one
section of a given kind is accepted per file.
"""

import logging
import re
from typing import Iterable, Optional

import yaml

from twistsync.core.exceptions import (
    EmptyContentError,
    MissingRequiredParamsError,
    MultipleSectionsError,
    SectionFormatError,
)
from twistsync.core.types import CommentSection, ParsedSection

logger = logging.getLogger("twistsync")

DRAFT_HEADER = r"^# DRAFT COMMENT"
EDIT_HEADER = r"^# EDIT COMMENT"

# Parameters accepted by comments/add and comments/update
DRAFT_PARAMS = (
    "recipients", "direct_mentions", "direct_group_mentions",
    "groups", "mark_thread_position", "thread_action",
)
EDIT_PARAMS = ("id", "direct_mentions", "direct_group_mentions")
EDIT_REQUIRED_PARAMS = ("id",)

_YAML_OPEN = re.compile(r"^```yaml\s*$", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"^```\s*$")


def find_comment_section(lines: list[str], header_pattern: str) -> Optional[CommentSection]:
    """Locate the single section whose header matches header_pattern.

    Args:
        lines: File lines without trailing newlines
        header_pattern: Regex anchored at line start, matched case-insensitively

    Returns:
        CommentSection spanning header line to last line, or None if absent

    Raises:
        MultipleSectionsError: The header occurs more than once
    """
    pattern = re.compile(header_pattern, re.IGNORECASE)
    starts = [i for i, line in enumerate(lines) if pattern.match(line)]

    if not starts:
        return None
    if len(starts) > 1:
        raise MultipleSectionsError(
            f"Found {len(starts)} sections matching '{header_pattern}' "
            f"(lines {', '.join(str(i + 1) for i in starts)}); only one is supported"
        )
    return CommentSection(start_line=starts[0], end_line=len(lines) - 1)


def parse_comment_section(
    lines: list[str],
    section: CommentSection,
    valid_params: Optional[Iterable[str]] = None,
    required_params: Optional[Iterable[str]] = None,
) -> ParsedSection:
    """Split a section into YAML parameters and body content.

    Args:
        lines: File lines without trailing newlines
        section: Span returned by find_comment_section
        valid_params: Allowed parameter names; others are dropped with a warning
        required_params: Parameter names that must be present

    Returns:
        ParsedSection with params, content and non-fatal warnings

    Raises:
        SectionFormatError: YAML block is not a parseable mapping
        MissingRequiredParamsError: A required parameter is absent
        EmptyContentError: Nothing left after the header/YAML block
    """
    section_lines = lines[section.start_line:section.end_line + 1]
    result = ParsedSection()

    pos = 1
    while pos < len(section_lines) and not section_lines[pos].strip():
        pos += 1
    content_start = pos

    if pos < len(section_lines) and _YAML_OPEN.match(section_lines[pos]):
        close = _find_closing_fence(section_lines, pos + 1)
        if close is None:
            _warn(result, "YAML block in comment section has no closing fence; treating it as content")
        else:
            result.params = _load_params(section_lines[pos + 1:close])
            content_start = close + 1

    if valid_params is not None:
        allowed = set(valid_params)
        unknown = [key for key in result.params if key not in allowed]
        if unknown:
            _warn(result, f"Unknown parameters ignored: {', '.join(unknown)}")
            result.params = {k: v for k, v in result.params.items() if k in allowed}

    if required_params is not None:
        missing = [key for key in required_params if key not in result.params]
        if missing:
            raise MissingRequiredParamsError(missing)

    result.content = _strip_blank_edges(section_lines[content_start:])
    if not result.content.strip():
        raise EmptyContentError()

    return result


def _find_closing_fence(lines: list[str], start: int) -> Optional[int]:
    for i in range(start, len(lines)):
        if _FENCE_CLOSE.match(lines[i]):
            return i
    return None


def _load_params(yaml_lines: list[str]) -> dict:
    """Parse the fenced YAML as a flat mapping, dropping null values."""
    try:
        loaded = yaml.safe_load("\n".join(yaml_lines))
    except yaml.YAMLError as e:
        raise SectionFormatError(f"Could not parse comment parameters: {e}")

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise SectionFormatError(
            f"Comment parameters must be a mapping, got {type(loaded).__name__}"
        )
    return {str(k): v for k, v in loaded.items() if v is not None}


def _strip_blank_edges(lines: list[str]) -> str:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return "\n".join(lines[start:end])


def _warn(result: ParsedSection, message: str) -> None:
    logger.warning(message)
    result.warnings.append(message)
