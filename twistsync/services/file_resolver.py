"""Decide whether local thread files are stale and where channel files live."""

import logging
import re
from pathlib import Path
from typing import Optional

from twistsync.core.exceptions import FormatError
from twistsync.core.types import ChannelDTO, SyncAction, ThreadDTO, ThreadFileInfo
from twistsync.services.thread_writer import channel_dir_name, read_yaml_header

logger = logging.getLogger("twistsync")

THREAD_FILE_PATTERN = re.compile(r"^(\d+)_.+\.md$")


def needs_update(remote_ts: int, local_ts: Optional[int], force: bool = False) -> bool:
    """True when the remote thread is strictly newer than the local file, or forced.

    A local file without a recorded timestamp is always stale.
    """
    if force or local_ts is None:
        return True
    return remote_ts > local_ts


def plan_reconcile(thread: ThreadDTO, existing: Optional[ThreadFileInfo],
                   force: bool = False) -> SyncAction:
    if existing is None:
        return SyncAction.CREATE
    if needs_update(thread.last_updated_ts, existing.last_updated_ts, force):
        return SyncAction.REWRITE
    return SyncAction.NOOP


class ThreadFileIndex:
    """Thread id -> existing file, built from one scan of a channel directory."""

    def __init__(self, entries: Optional[dict[int, ThreadFileInfo]] = None):
        self._entries: dict[int, ThreadFileInfo] = dict(entries or {})

    @classmethod
    def build(cls, channel_dir: Path) -> "ThreadFileIndex":
        """Index every `{id}_{slug}.md` file in channel_dir.

        Files whose front matter cannot be read are skipped with a warning.
        When two files carry the same id, the one with the newer
        last_updated_ts wins and the other is reported as an orphan.
        """
        index = cls()
        if not channel_dir.is_dir():
            return index

        for path in sorted(channel_dir.iterdir()):
            match = THREAD_FILE_PATTERN.match(path.name)
            if not match or not path.is_file():
                continue
            try:
                header = read_yaml_header(path)
            except (FormatError, OSError, UnicodeDecodeError) as e:
                logger.warning(f"Error processing thread file {path}: {e}")
                continue

            info = ThreadFileInfo(
                thread_id=int(match.group(1)),
                path=path,
                last_updated_ts=as_timestamp(header.get("last_updated_ts")),
            )
            index._add(info)

        logger.debug(f"Indexed {len(index)} thread files in {channel_dir}")
        return index

    def _add(self, info: ThreadFileInfo) -> None:
        current = self._entries.get(info.thread_id)
        if current is None:
            self._entries[info.thread_id] = info
            return

        if (info.last_updated_ts or 0) > (current.last_updated_ts or 0):
            current, info = info, current
            self._entries[current.thread_id] = current
        logger.warning(
            f"Thread {info.thread_id} has more than one file; "
            f"using {current.path.name}, ignoring orphan {info.path.name}"
        )

    def get(self, thread_id: int) -> Optional[ThreadFileInfo]:
        return self._entries.get(int(thread_id))

    def put(self, info: ThreadFileInfo) -> None:
        self._entries[info.thread_id] = info

    def __contains__(self, thread_id) -> bool:
        return int(thread_id) in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def handle_channel_directory(channel: ChannelDTO, workspace_dir: Path) -> Path:
    """Return the channel's directory, renaming or creating it as needed.

    A directory named `{channel_id}_...` under another name means the channel
    was renamed remotely; it is moved rather than recreated.
    """
    expected_name = channel_dir_name(channel)
    expected_path = workspace_dir / expected_name

    if expected_path.is_dir():
        return expected_path

    prefix = f"{channel.id}_"
    existing = sorted(
        p for p in workspace_dir.iterdir()
        if p.is_dir() and p.name.startswith(prefix)
    ) if workspace_dir.is_dir() else []

    if existing:
        old_dir = existing[0]
        old_dir.rename(expected_path)
        logger.info(f"Channel directory renamed: {old_dir.name} -> {expected_name}")
    else:
        expected_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created channel directory: {expected_name}")

    return expected_path


def as_timestamp(value) -> Optional[int]:
    """Front-matter timestamp as int, None when absent or unparseable."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
