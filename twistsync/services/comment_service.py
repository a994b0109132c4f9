"""Comment service: post draft sections and apply edit sections from thread files."""

import logging
from pathlib import Path
from typing import Optional, Union

from twistsync.adapters.twist_adapter import TwistAdapter
from twistsync.core.exceptions import (
    NoDraftFoundError,
    PostFailedError,
    ThreadFileNotFoundError,
    TransportError,
)
from twistsync.core.types import (
    AddCommentParams,
    CommentDTO,
    ParsedSection,
    UpdateCommentParams,
)
from twistsync.services.comment_parser import (
    DRAFT_HEADER,
    DRAFT_PARAMS,
    EDIT_HEADER,
    EDIT_PARAMS,
    EDIT_REQUIRED_PARAMS,
    find_comment_section,
    parse_comment_section,
)
from twistsync.services.sync_service import SyncService
from twistsync.services.thread_writer import header_thread_id, read_lines, read_yaml_header

logger = logging.getLogger("twistsync")


class CommentService:
    """Turns a trailing draft/edit section of a thread file into a Twist mutation.

    After a successful mutation the thread file can be regenerated from
    remote state, which shows the new comment and drops the section.
    """

    def __init__(self, twist: TwistAdapter, sync: SyncService):
        self._twist = twist
        self._sync = sync

    def post_draft(self, file_path: Path, update: bool = True,
                   dry_run: bool = False) -> Union[CommentDTO, ParsedSection]:
        """Post the `# DRAFT COMMENT` section of a thread file.

        Args:
            file_path: Thread markdown file
            update: Regenerate the file after posting
            dry_run: Parse only; return the ParsedSection without posting

        Returns:
            Created CommentDTO, or the ParsedSection when dry_run

        Raises:
            ThreadFileNotFoundError, ThreadIdMissingError, InvalidFormatError, NoDraftFoundError,
            MultipleSectionsError, MissingRequiredParamsError, EmptyContentError,
            PostFailedError
        """
        file_path = Path(file_path)
        thread_id, lines = self._read_thread_file(file_path)

        section = find_comment_section(lines, DRAFT_HEADER)
        if section is None:
            raise NoDraftFoundError("No draft comment found in file")
        draft = parse_comment_section(lines, section, valid_params=DRAFT_PARAMS)

        if dry_run:
            logger.info(f"Would post comment to thread {thread_id}")
            return draft

        params = AddCommentParams.from_params(thread_id, draft.content, draft.params)
        try:
            comment = self._twist.add_comment(params)
        except TransportError as e:
            raise PostFailedError(f"Failed to post comment: {e.message}")

        if comment is None or comment.id is None:
            raise PostFailedError("Comment posting failed - no comment ID returned")
        logger.info(f"Posted comment {comment.id} to thread {thread_id}")

        self._refresh(file_path, update)
        return comment

    def update_draft(self, file_path: Path, update: bool = True,
                     dry_run: bool = False) -> Union[CommentDTO, ParsedSection]:
        """Apply the `# EDIT COMMENT` section of a thread file to an existing comment.

        The section's YAML must carry the id of the comment to replace.

        Returns:
            Updated CommentDTO, or the ParsedSection when dry_run
        """
        file_path = Path(file_path)
        thread_id, lines = self._read_thread_file(file_path)

        section = find_comment_section(lines, EDIT_HEADER)
        if section is None:
            raise NoDraftFoundError("No edit comment found in file")
        edit = parse_comment_section(
            lines, section, valid_params=EDIT_PARAMS, required_params=EDIT_REQUIRED_PARAMS
        )

        if dry_run:
            logger.info(f"Would update comment {edit.params['id']} in thread {thread_id}")
            return edit

        params = UpdateCommentParams.from_params(edit.content, edit.params)
        try:
            comment = self._twist.update_comment(params)
        except TransportError as e:
            raise PostFailedError(f"Failed to update comment: {e.message}")

        if comment is None or comment.id is None:
            raise PostFailedError("Comment update failed - no comment ID returned")
        logger.info(f"Updated comment {comment.id} in thread {thread_id}")

        self._refresh(file_path, update)
        return comment

    @staticmethod
    def _read_thread_file(file_path: Path) -> tuple[int, list[str]]:
        if not file_path.is_file():
            raise ThreadFileNotFoundError(f"Thread file not found: {file_path}")

        thread_id = header_thread_id(read_yaml_header(file_path), file_path)
        return thread_id, read_lines(file_path)

    def _refresh(self, file_path: Path, update: bool) -> Optional[Path]:
        if not update:
            logger.info("Thread file not updated")
            return None
        new_path = self._sync.update_thread_file(file_path, force=True)
        logger.info(f"Thread file updated: {new_path}")
        return new_path
