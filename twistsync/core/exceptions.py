"""Custom exception hierarchy for twistsync."""


class TwistSyncError(Exception):
    """Base exception for all twistsync errors."""

    def __init__(self, message: str = "An error occurred in twistsync"):
        self.message = message
        super().__init__(self.message)


class ConfigError(TwistSyncError):
    """Configuration is invalid or missing."""

    def __init__(self, message: str = "Configuration error"):
        super().__init__(message)


class TransportError(TwistSyncError):
    """Base exception for remote call failures."""

    def __init__(self, message: str = "A remote call failed"):
        super().__init__(message)


class TwistAPIError(TransportError):
    """Twist API returned an error or could not be reached."""

    def __init__(self, message: str = "Twist API request failed"):
        super().__init__(message)


class AuthenticationError(TransportError):
    """HTTP 401/403 - token rejected."""

    def __init__(self, message: str = "Twist API rejected the token"):
        super().__init__(message)


class RemoteNotFoundError(TransportError):
    """HTTP 404 - requested object does not exist."""

    def __init__(self, message: str = "Requested Twist object not found"):
        super().__init__(message)


class RateLimitError(TransportError):
    """HTTP 429 - Rate limit exceeded."""

    def __init__(self, message: str = "Twist API rate limit exceeded"):
        super().__init__(message)


class PostFailedError(TransportError):
    """A comment mutation failed or returned no comment id."""

    def __init__(self, message: str = "Comment posting failed"):
        super().__init__(message)


class FormatError(TwistSyncError):
    """Base exception for malformed local files."""

    def __init__(self, message: str = "Invalid file format"):
        super().__init__(message)


class InvalidFormatError(FormatError):
    """Thread file front matter is missing or malformed."""

    def __init__(self, message: str = "Invalid markdown file format"):
        super().__init__(message)


class SectionFormatError(FormatError):
    """Draft/edit comment section parameters cannot be parsed."""

    def __init__(self, message: str = "Invalid comment section parameters"):
        super().__init__(message)


class ValidationError(TwistSyncError):
    """Base exception for comment section validation failures."""

    def __init__(self, message: str = "Comment section is invalid"):
        super().__init__(message)


class MissingRequiredParamsError(ValidationError):
    """Comment section lacks required parameters."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Required parameters missing: {', '.join(self.missing)}")


class EmptyContentError(ValidationError):
    """Comment section has no body text."""

    def __init__(self, message: str = "Comment section has no content"):
        super().__init__(message)


class NotFoundError(TwistSyncError):
    """Base exception for missing local inputs."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class NoDraftFoundError(NotFoundError):
    """File has no draft/edit comment section."""

    def __init__(self, message: str = "No draft comment found in file"):
        super().__init__(message)


class ThreadIdMissingError(NotFoundError):
    """Thread file front matter has no thread_id."""

    def __init__(self, message: str = "No thread_id found in file header"):
        super().__init__(message)


class ThreadFileNotFoundError(NotFoundError):
    """Thread file does not exist."""

    def __init__(self, message: str = "Thread file not found"):
        super().__init__(message)


class StateError(TwistSyncError):
    """Base exception for inconsistent local state."""

    def __init__(self, message: str = "Inconsistent state"):
        super().__init__(message)


class MultipleSectionsError(StateError):
    """More than one draft/edit section of the same kind in a file."""

    def __init__(self, message: str = "Multiple comment sections found in file"):
        super().__init__(message)
