"""Twist REST API v3 adapter with bearer auth and rate limiting."""

import logging
import time
from typing import Optional

import requests

from twistsync.adapters.twist_adapter import TwistAdapter
from twistsync.core.exceptions import (
    AuthenticationError,
    RateLimitError,
    RemoteNotFoundError,
    TwistAPIError,
)
from twistsync.core.types import (
    AddCommentParams,
    ChannelDTO,
    CommentDTO,
    ThreadDTO,
    ThreadQuery,
    UpdateCommentParams,
)


logger = logging.getLogger("twistsync")

_APP_VERSION = "0.1.0"


class RateLimiter:
    """Simple minimum-interval rate limiter.

    Enforces a minimum time gap between requests.
    On 429, uses exponential backoff.
    """

    def __init__(self, interval_sec: float = 0.5, max_retries: int = 3):
        self._interval = interval_sec
        self._max_retries = max_retries
        self._last_request_time: float = 0.0

    def wait(self) -> None:
        """Wait if needed to respect minimum interval."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self._interval:
            sleep_time = self._interval - elapsed
            logger.debug(f"Rate limiter: sleeping {sleep_time:.1f}s")
            time.sleep(sleep_time)

    def mark_request(self) -> None:
        """Record that a request was just made."""
        self._last_request_time = time.time()

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def get_backoff_time(self, attempt: int, retry_after: Optional[str] = None) -> float:
        """Retry-After header when the server sends one, else max(interval, 1s) * 2^attempt."""
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass
        return max(self._interval, 1.0) * (2 ** attempt)


class TwistRESTAdapter(TwistAdapter):
    """Talks to https://api.twist.com/api/v3/ with a bearer token."""

    BASE_URL = "https://api.twist.com/api/v3/"

    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        timeout: int = 30,
        request_interval_sec: float = 0.5,
        max_retries: int = 3,
    ):
        self._base_url = (base_url or self.BASE_URL).rstrip("/") + "/"
        self._timeout = timeout
        self._rate_limiter = RateLimiter(request_interval_sec, max_retries)
        self._session = requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {token}",
            "User-Agent": f"twistsync/{_APP_VERSION}",
            "Accept": "application/json",
        })

    def get_channels(self, workspace_id: int) -> list[ChannelDTO]:
        data = self._request("GET", "channels/get", {"workspace_id": workspace_id})
        return [self._parse_channel(d) for d in self._expect_list(data, "channels/get")]

    def get_channel(self, channel_id: int) -> ChannelDTO:
        data = self._request("GET", "channels/getone", {"id": channel_id})
        return self._parse_channel(data)

    def get_threads(self, query: ThreadQuery) -> list[ThreadDTO]:
        data = self._request("GET", "threads/get", query.to_params())
        return [self._parse_thread(d) for d in self._expect_list(data, "threads/get")]

    def get_thread(self, thread_id: int) -> ThreadDTO:
        data = self._request("GET", "threads/getone", {"id": thread_id})
        return self._parse_thread(data)

    def get_comments(self, thread_id: int) -> list[CommentDTO]:
        data = self._request("GET", "comments/get", {"thread_id": thread_id})
        return [self._parse_comment(d) for d in self._expect_list(data, "comments/get")]

    def add_comment(self, params: AddCommentParams) -> CommentDTO:
        data = self._request("POST", "comments/add", params.to_form())
        return self._parse_comment(data)

    def update_comment(self, params: UpdateCommentParams) -> CommentDTO:
        data = self._request("POST", "comments/update", params.to_form())
        return self._parse_comment(data)

    def _request(self, method: str, endpoint: str, params: dict) -> dict | list:
        """Perform a request with rate limiting and error mapping.

        Only 429 responses are retried; every other failure is raised
        immediately so the caller aborts its current unit of work.
        """
        url = self._base_url + endpoint
        self._rate_limiter.wait()

        for attempt in range(self._rate_limiter.max_retries + 1):
            self._rate_limiter.mark_request()
            try:
                if method == "GET":
                    response = self._session.get(url, params=params, timeout=self._timeout)
                else:
                    response = self._session.post(url, data=params, timeout=self._timeout)
            except requests.RequestException as e:
                raise TwistAPIError(f"Request to {endpoint} failed: {e}")

            if response.status_code == 429:
                if attempt < self._rate_limiter.max_retries:
                    backoff = self._rate_limiter.get_backoff_time(
                        attempt, response.headers.get("Retry-After")
                    )
                    logger.warning(f"Rate limited (429). Backoff: {backoff}s (attempt {attempt + 1})")
                    time.sleep(backoff)
                    continue
                raise RateLimitError(f"Rate limit exceeded on {endpoint} after max retries")

            if response.status_code in (401, 403):
                raise AuthenticationError(
                    f"Twist API rejected the token on {endpoint} (HTTP {response.status_code})"
                )
            if response.status_code == 404:
                raise RemoteNotFoundError(f"Not found: {endpoint} {params}")
            if response.status_code >= 400:
                raise TwistAPIError(
                    f"{endpoint} failed with HTTP {response.status_code}: {response.text[:200]}"
                )

            try:
                data = response.json()
            except ValueError as e:
                raise TwistAPIError(f"{endpoint} returned invalid JSON: {e}")

            if isinstance(data, dict) and "error_code" in data:
                raise TwistAPIError(
                    f"{endpoint} failed: {data.get('error_string', data['error_code'])}"
                )
            return data

        raise RateLimitError(f"Rate limit exceeded on {endpoint}")

    @staticmethod
    def _expect_list(data, endpoint: str) -> list:
        if not isinstance(data, list):
            raise TwistAPIError(f"Unexpected {endpoint} response format")
        return data

    @staticmethod
    def _parse_channel(d: dict) -> ChannelDTO:
        return ChannelDTO(
            id=d["id"],
            name=d.get("name", ""),
            workspace_id=d.get("workspace_id"),
            archived=bool(d.get("archived", False)),
        )

    @staticmethod
    def _parse_thread(d: dict) -> ThreadDTO:
        return ThreadDTO(
            id=d["id"],
            title=d.get("title", ""),
            content=d.get("content") or "",
            creator=d.get("creator"),
            creator_name=d.get("creator_name") or "",
            channel_id=d.get("channel_id"),
            workspace_id=d.get("workspace_id"),
            posted_ts=d.get("posted_ts") or 0,
            last_updated_ts=d.get("last_updated_ts") or 0,
        )

    @staticmethod
    def _parse_comment(d: dict) -> CommentDTO:
        # A mutation response without an id surfaces as id=None for the caller to reject
        if not isinstance(d, dict):
            return CommentDTO(id=None)
        return CommentDTO(
            id=d.get("id"),
            thread_id=d.get("thread_id"),
            creator=d.get("creator"),
            creator_name=d.get("creator_name") or "",
            content=d.get("content") or "",
            posted_ts=d.get("posted_ts") or 0,
        )
