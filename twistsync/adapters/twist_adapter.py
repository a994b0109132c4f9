"""Abstract base class for Twist data access."""

from abc import ABC, abstractmethod

from twistsync.core.types import (
    AddCommentParams,
    ChannelDTO,
    CommentDTO,
    ThreadDTO,
    ThreadQuery,
    UpdateCommentParams,
)


class TwistAdapter(ABC):
    """Abstract interface for reading and mutating Twist data."""

    @abstractmethod
    def get_channels(self, workspace_id: int) -> list[ChannelDTO]:
        """Fetch all channels of a workspace, archived ones included.

        Raises:
            TransportError: Request failed
        """
        ...

    @abstractmethod
    def get_channel(self, channel_id: int) -> ChannelDTO:
        """Fetch a single channel.

        Raises:
            RemoteNotFoundError: 404 Not Found
            TransportError: Request failed
        """
        ...

    @abstractmethod
    def get_threads(self, query: ThreadQuery) -> list[ThreadDTO]:
        """Fetch one page of threads in a channel.

        Args:
            query: Channel id, page size, ordering, pagination cursor and
                time filters

        Returns:
            List of ThreadDTO in the requested order
        """
        ...

    @abstractmethod
    def get_thread(self, thread_id: int) -> ThreadDTO:
        """Fetch a single thread."""
        ...

    @abstractmethod
    def get_comments(self, thread_id: int) -> list[CommentDTO]:
        """Fetch all comments of a thread in posting order."""
        ...

    @abstractmethod
    def add_comment(self, params: AddCommentParams) -> CommentDTO:
        """Post a new comment. Returns the created comment."""
        ...

    @abstractmethod
    def update_comment(self, params: UpdateCommentParams) -> CommentDTO:
        """Replace the content of an existing comment. Returns the updated comment."""
        ...
