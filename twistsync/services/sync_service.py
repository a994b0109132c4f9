"""Sync service: walk workspace -> channels -> thread pages and keep thread files current."""

import logging
from pathlib import Path
from typing import Optional, Union

from twistsync.adapters.twist_adapter import TwistAdapter
from twistsync.core.exceptions import ThreadFileNotFoundError
from twistsync.core.types import (
    ChannelDTO,
    ReconcileResult,
    Settings,
    SyncAction,
    SyncOptions,
    ThreadDTO,
    ThreadFileInfo,
    ThreadQuery,
)
from twistsync.services.file_resolver import (
    ThreadFileIndex,
    as_timestamp,
    handle_channel_directory,
    plan_reconcile,
)
from twistsync.services.thread_writer import (
    header_thread_id,
    read_yaml_header,
    render_thread,
    thread_file_name,
    write_thread_file,
)

logger = logging.getLogger("twistsync")

PAGE_SIZE = 100
MAX_THREAD_LIMIT = 500  # threads/get ceiling


class SyncService:
    """Orchestrates channel listing, thread pagination and file reconciliation.

    Responsibilities:
    - Resolve (create/rename) one directory per channel
    - Page through a channel's threads, newest first
    - Create, rewrite or skip each thread file by comparing last_updated_ts
    - Refresh a single thread file on demand (after posting a comment)
    """

    def __init__(self, twist: TwistAdapter, settings: Settings):
        self._twist = twist
        self._settings = settings

    def list_channels(self, archived: bool = False) -> list[ChannelDTO]:
        """Channels of the configured workspace; archived ones only when asked."""
        channels = self._twist.get_channels(self._settings.workspace_id)
        if not archived:
            channels = [c for c in channels if not c.archived]
        return channels

    def sync_workspace(self, options: Optional[SyncOptions] = None) -> list[Path]:
        """Sync every non-archived channel of the workspace.

        Returns:
            Paths of thread files created or rewritten

        Raises:
            TransportError: Any remote call failed; the run is aborted
        """
        options = self._normalize_options(options)
        self._settings.workspace_dir.mkdir(parents=True, exist_ok=True)

        updated: list[Path] = []
        for channel in self.list_channels():
            updated.extend(self.sync_channel(channel, options))

        logger.info(f"Workspace update complete. Updated {len(updated)} thread files.")
        return updated

    def sync_channel(self, channel: Union[ChannelDTO, int],
                     options: Optional[SyncOptions] = None) -> list[Path]:
        """Sync one channel, given as a ChannelDTO or a channel id.

        Returns:
            Paths of thread files created or rewritten
        """
        options = self._normalize_options(options)
        if not isinstance(channel, ChannelDTO):
            channel = self._twist.get_channel(int(channel))

        self._settings.workspace_dir.mkdir(parents=True, exist_ok=True)
        channel_dir = handle_channel_directory(channel, self._settings.workspace_dir)
        logger.info(f"Processing channel: {channel.name} (ID: {channel.id})")

        query = ThreadQuery(
            channel_id=channel.id,
            limit=min(PAGE_SIZE, options.thread_limit),
            order_by="desc",
            newer_than_ts=options.newer_than_ts,
            older_than_ts=options.older_than_ts,
        )
        index = ThreadFileIndex.build(channel_dir)
        return self._sync_pages(query, channel_dir, index, options)

    def _sync_pages(self, query: ThreadQuery, channel_dir: Path, index: ThreadFileIndex,
                    options: SyncOptions) -> list[Path]:
        page_size = query.limit
        updated: list[Path] = []
        processed = 0

        while processed < options.thread_limit:
            query.limit = min(page_size, options.thread_limit - processed)
            threads = self._twist.get_threads(query)
            if not threads:
                break

            for thread in threads:
                result = self.reconcile_thread(
                    thread, channel_dir, index, options.force, options.timezone
                )
                if result.path is not None:
                    updated.append(result.path)

            processed += len(threads)
            logger.info(f"  Processed {processed} threads, updated {len(updated)} files")

            if len(threads) < query.limit:
                break
            # Descending order: the smallest id is the oldest thread of this page
            query.before_id = min(t.id for t in threads)

        return updated

    def reconcile_thread(self, thread: ThreadDTO, channel_dir: Path, index: ThreadFileIndex,
                         force: bool = False, timezone: Optional[str] = None) -> ReconcileResult:
        """Create, rewrite or skip the local file for one remote thread.

        A rewrite under a new title writes the new file before deleting the
        old one, so a failed write never leaves the thread without a file.
        """
        timezone = timezone or self._settings.timezone
        existing = index.get(thread.id)
        action = plan_reconcile(thread, existing, force)

        if action is SyncAction.NOOP:
            logger.debug(f"Thread {thread.id} is up to date")
            return ReconcileResult(action)

        comments = self._twist.get_comments(thread.id)
        text = render_thread(thread, comments, timezone, self._settings.web_base_url)
        path = write_thread_file(channel_dir / thread_file_name(thread), text)

        if action is SyncAction.REWRITE and existing.path != path:
            existing.path.unlink(missing_ok=True)
            logger.info(f"Renamed thread file: {existing.path.name} -> {path.name}")
        else:
            logger.debug(f"{action.value.capitalize()} {path.name}")

        index.put(ThreadFileInfo(thread.id, path, thread.last_updated_ts))
        return ReconcileResult(action, path)

    def write_thread(self, thread: Union[ThreadDTO, int], directory: Path = Path("."),
                     timezone: Optional[str] = None) -> Path:
        """Fetch a thread (by DTO or id) and its comments and write its file into directory."""
        if not isinstance(thread, ThreadDTO):
            thread = self._twist.get_thread(int(thread))
        directory.mkdir(parents=True, exist_ok=True)
        result = self.reconcile_thread(thread, directory, ThreadFileIndex(), True, timezone)
        return result.path

    def update_thread_file(self, file_path: Path, force: bool = False,
                           timezone: Optional[str] = None) -> Path:
        """Refresh one thread file from remote state.

        The file is matched by the thread_id in its front matter; a new
        title moves it to the new canonical name in the same directory.

        Returns:
            Path of the (possibly renamed) thread file

        Raises:
            ThreadFileNotFoundError: file_path does not exist
            ThreadIdMissingError: Front matter has no thread_id
            InvalidFormatError: thread_id is not an integer
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            raise ThreadFileNotFoundError(f"Thread file not found: {file_path}")

        header = read_yaml_header(file_path)
        thread_id = header_thread_id(header, file_path)

        thread = self._twist.get_thread(thread_id)
        existing = ThreadFileInfo(
            thread_id, file_path, as_timestamp(header.get("last_updated_ts"))
        )
        timezone = timezone or header.get("timezone") or self._settings.timezone

        result = self.reconcile_thread(
            thread, file_path.parent, ThreadFileIndex({existing.thread_id: existing}),
            force, timezone,
        )
        return result.path or file_path

    def thread_to_string(self, thread_id: int, timezone: Optional[str] = None) -> str:
        """Render a remote thread as it would be written to disk."""
        thread = self._twist.get_thread(int(thread_id))
        comments = self._twist.get_comments(thread.id)
        return render_thread(
            thread, comments, timezone or self._settings.timezone, self._settings.web_base_url
        )

    def _normalize_options(self, options: Optional[SyncOptions]) -> SyncOptions:
        if options is None:
            options = SyncOptions(timezone=self._settings.timezone)
        if options.thread_limit > MAX_THREAD_LIMIT:
            logger.warning(
                f"thread_limit {options.thread_limit} exceeds the API maximum; using {MAX_THREAD_LIMIT}"
            )
            options.thread_limit = MAX_THREAD_LIMIT
        elif options.thread_limit < 1:
            logger.warning(f"thread_limit {options.thread_limit} < 1; using 1")
            options.thread_limit = 1
        return options
