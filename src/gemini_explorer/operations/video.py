"""
Video generation: submit a job, poll its operation handle until done, and
return a download link that carries the access key.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable
from urllib.parse import urlencode

from google import genai
from google.genai import types

from gemini_explorer.errors import (
    GenerationFailedError,
    InvalidApiKeyError,
    VideoTimeoutError,
)
from gemini_explorer.operations.results import VideoResult
from gemini_explorer.runtime_config import DEFAULT_POLL_INTERVAL, get_api_key

logger = logging.getLogger(__name__)

KEY_NOT_FOUND_MARKER = "Requested entity was not found."
INVALID_KEY_MESSAGE = "API key is invalid or not found. Please select a valid key."
NO_LINK_MESSAGE = "Video generation completed but no download link found."


@runtime_checkable
class KeySelector(Protocol):
    """Host capability that lets the user pick the API key used for video."""

    async def has_selected_api_key(self) -> bool: ...

    async def open_select_key(self) -> None: ...

    def mark_invalid(self, api_key: str) -> None: ...


def append_api_key(uri: str, api_key: str) -> str:
    """Return ``uri`` with the access key added as a ``key`` query parameter."""
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}{urlencode({'key': api_key})}"


def extract_video_uri(operation: Any) -> Optional[str]:
    response = getattr(operation, "response", None)
    videos = getattr(response, "generated_videos", None) or []
    if not videos:
        return None
    video = getattr(videos[0], "video", None)
    return getattr(video, "uri", None)


def _operation_error_message(operation: Any) -> Optional[str]:
    error = getattr(operation, "error", None)
    if not error:
        return None
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


class VideoGenerator:
    """Runs one video generation job to completion.

    Attributes:
        client_factory: Builds a client for an API key; called after key selection
            so a freshly selected key is used.
        model: Video model identifier.
        poll_interval: Seconds to sleep between polls.
        max_polls: Maximum number of polls; None keeps polling until done.
        key_selector: Optional host key-selection capability.
    """

    def __init__(
        self,
        client_factory: Callable[[str], genai.Client],
        model: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: Optional[int] = None,
        key_selector: Optional[KeySelector] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client_factory = client_factory
        self.model = model
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.key_selector = key_selector
        self._sleep = sleep

    async def _ensure_key_selected(self) -> None:
        if self.key_selector is None:
            return
        if not await self.key_selector.has_selected_api_key():
            logger.info("No API key selected for video generation, opening selection")
            await self.key_selector.open_select_key()

    async def generate(self, prompt: str) -> VideoResult:
        await self._ensure_key_selected()

        api_key = get_api_key()
        client = self.client_factory(api_key)

        try:
            operation = await client.aio.models.generate_videos(
                model=self.model,
                prompt=prompt,
                config=types.GenerateVideosConfig(
                    number_of_videos=1,
                    resolution="720p",
                    aspect_ratio="16:9",
                ),
            )
            logger.info("Submitted video operation %s", getattr(operation, "name", "?"))

            polls = 0
            while not operation.done:
                if self.max_polls is not None and polls >= self.max_polls:
                    raise VideoTimeoutError(
                        f"Video generation did not finish after {polls} polls."
                    )
                await self._sleep(self.poll_interval)
                operation = await client.aio.operations.get(operation)
                polls += 1
                logger.debug("Video operation poll %d, done=%s", polls, operation.done)

            error_message = _operation_error_message(operation)
            if error_message:
                raise GenerationFailedError(f"Video generation failed: {error_message}")

            uri = extract_video_uri(operation)
            if not uri:
                raise GenerationFailedError(NO_LINK_MESSAGE)
        except Exception as e:
            if KEY_NOT_FOUND_MARKER in str(e):
                if self.key_selector is not None:
                    self.key_selector.mark_invalid(api_key)
                raise InvalidApiKeyError(INVALID_KEY_MESSAGE) from e
            raise

        logger.info("Video generation finished after %d polls", polls)
        return VideoResult(uri=append_api_key(uri, api_key))
