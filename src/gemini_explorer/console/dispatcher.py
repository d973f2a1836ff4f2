"""
Command dispatcher: parses console input, routes it to an operation and
records commands, results and errors in the history log.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple

from gemini_explorer.console.commands import COMMANDS_BY_NAME, HELP_MESSAGE, CommandSpec
from gemini_explorer.console.state import EntryKind, HistoryLog
from gemini_explorer.errors import UploadError, UsageError
from gemini_explorer.operations.geolocation import Geolocator
from gemini_explorer.operations.results import TextResult
from gemini_explorer.operations.service import GenerativeService
from gemini_explorer.operations.uploads import (
    DEFAULT_DESCRIBE_PROMPT,
    FilePicker,
    PendingUpload,
    read_image_file,
)
from gemini_explorer.runtime_config import DEFAULT_POLL_INTERVAL

logger = logging.getLogger(__name__)

# These commands wait on the user or the host environment; execute() returns
# as soon as they start and the busy flag stays set until they finish.
DEFERRED_COMMANDS = frozenset({"maps", "describe"})

KEY_SELECTION_HINT = "select a valid key"
KEY_SELECTION_GUIDANCE = (
    "Please try the 'video' command again to re-trigger API key selection."
)


def parse_command_line(line: str) -> Tuple[str, str]:
    """Split a line into a lower-cased command and the verbatim remainder."""
    parts = line.strip().split(maxsplit=1)
    if not parts:
        return "", ""
    command = parts[0].lower()
    argument = parts[1] if len(parts) > 1 else ""
    return command, argument


class CommandDispatcher:
    """Runs one console command at a time against a GenerativeService.

    Attributes:
        service: The generative API the operations call.
        geolocator: Source of coordinates for the maps command.
        file_picker: Asks the user for an image for the describe command.
        history: The append-only log rendered by the console.
        chat_session: The current chat handle, created on the first chat command.
        pending_upload: Set while describe waits for a file.
        busy: True while a command is in flight.
    """

    def __init__(
        self,
        service: GenerativeService,
        geolocator: Geolocator,
        file_picker: Optional[FilePicker] = None,
        history: Optional[HistoryLog] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.service = service
        self.geolocator = geolocator
        self.file_picker = file_picker
        self.history = history or HistoryLog()
        self.poll_interval = poll_interval

        self.chat_session: Optional[object] = None
        self.pending_upload: Optional[PendingUpload] = None
        self.busy = False
        self._current_task: Optional[asyncio.Task[None]] = None
        self._cancel_requested = False

        self._handlers: Dict[str, Callable[[str], Awaitable[None]]] = {
            "help": self._help,
            "clear": self._clear,
            "text": self._text,
            "stream": self._stream,
            "chat": self._chat,
            "chat-reset": self._chat_reset,
            "json": self._json,
            "function-call": self._function_call,
            "search": self._search,
            "maps": self._maps,
            "describe": self._describe,
            "image": self._image,
            "video": self._video,
        }

    async def execute(self, line: str) -> bool:
        """Run one input line; returns False if the line was not accepted."""
        if self.busy:
            logger.warning("Rejected input while a command is running: %s", line)
            return False

        command, argument = parse_command_line(line)
        if not command:
            return False

        self.history.append(EntryKind.command, line)

        spec = COMMANDS_BY_NAME.get(command)
        if spec is None:
            self.history.append(
                EntryKind.error,
                f"Command not found: {command}. Type 'help' for a list of commands.",
            )
            return True

        try:
            spec.validate(argument)
        except UsageError as e:
            self.history.append(EntryKind.error, str(e))
            return True

        logger.info("Running command %s", command)
        self.busy = True
        task = asyncio.create_task(self._run(spec, argument))
        task.add_done_callback(self._release)
        self._current_task = task

        if command not in DEFERRED_COMMANDS:
            await asyncio.wait({task})
        return True

    async def drain(self) -> None:
        """Wait for a deferred command (maps, describe) to finish."""
        task = self._current_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def cancel(self) -> bool:
        """Cancel the running command, if any."""
        task = self._current_task
        if task is None or task.done():
            return False
        self._cancel_requested = True
        task.cancel()
        return True

    def _release(self, task: "asyncio.Task[None]") -> None:
        self.busy = False
        self._cancel_requested = False
        self.pending_upload = None
        if self._current_task is task:
            self._current_task = None

    async def _run(self, spec: CommandSpec, argument: str) -> None:
        try:
            await self._handlers[spec.name](argument)
        except asyncio.CancelledError:
            logger.info("Command %s cancelled", spec.name)
            # Only a cancel() from the console ends the command quietly; loop
            # shutdown keeps propagating
            if not self._cancel_requested:
                raise
            self.history.append(EntryKind.system, "Command cancelled.")
        except Exception as e:
            logger.exception("Command %s failed", spec.name)
            self._record_error(e)

    def _record_error(self, error: Exception) -> None:
        message = str(error) or "An unknown error occurred."
        self.history.append(EntryKind.error, message)
        if KEY_SELECTION_HINT in message:
            self.history.append(EntryKind.system, KEY_SELECTION_GUIDANCE)

    # --- Console commands ---

    async def _help(self, argument: str) -> None:
        self.history.append(EntryKind.system, HELP_MESSAGE)

    async def _clear(self, argument: str) -> None:
        self.history.reset()

    async def _chat_reset(self, argument: str) -> None:
        self.chat_session = None
        self.history.append(EntryKind.system, "Chat session reset.")

    # --- Generative operations ---

    async def _text(self, prompt: str) -> None:
        self.history.append(EntryKind.output, await self.service.generate_text(prompt))

    async def _stream(self, prompt: str) -> None:
        self.history.append(EntryKind.output, TextResult("", streaming=True))
        async for chunk in self.service.stream_text(prompt):
            self.history.extend_last(chunk)

    async def _chat(self, message: str) -> None:
        if self.chat_session is None:
            self.chat_session = self.service.start_chat()
            self.history.append(EntryKind.system, "New chat session started.")
        reply = await self.service.continue_chat(self.chat_session, message)
        self.history.append(EntryKind.output, reply)

    async def _json(self, argument: str) -> None:
        self.history.append(EntryKind.system, "Requesting JSON response...")
        self.history.append(EntryKind.output, await self.service.json_recipes())

    async def _function_call(self, prompt: str) -> None:
        self.history.append(EntryKind.output, await self.service.function_call(prompt))

    async def _search(self, query: str) -> None:
        self.history.append(EntryKind.output, await self.service.search(query))

    async def _maps(self, query: str) -> None:
        self.history.append(EntryKind.system, "Requesting geolocation...")
        try:
            location = await self.geolocator.locate()
        except Exception as e:
            logger.warning("Geolocation failed: %s", e)
            self.history.append(EntryKind.error, f"Geolocation failed: {e}")
            return
        self.history.append(EntryKind.system, f"Location found: {location.describe()}")
        result = await self.service.search_maps(query, location)
        self.history.append(EntryKind.output, result)

    async def _describe(self, prompt: str) -> None:
        self.pending_upload = PendingUpload(
            originating_command="describe",
            prompt_text=prompt or DEFAULT_DESCRIBE_PROMPT,
        )
        self.history.append(EntryKind.system, "Please select an image file to describe.")
        if self.file_picker is None:
            raise UploadError("File selection is not available in this console.")

        path = await self.file_picker.pick_file()
        if path is None:
            self.history.append(EntryKind.system, "Image selection cancelled.")
            return

        image = read_image_file(path)
        self.history.append(EntryKind.system, f"Describing image: {image.name}...")
        description = await self.service.describe_image(
            self.pending_upload.prompt_text, image.data_base64, image.mime_type
        )
        self.history.append(EntryKind.output, description)

    async def _image(self, prompt: str) -> None:
        self.history.append(EntryKind.output, await self.service.generate_image(prompt))

    async def _video(self, prompt: str) -> None:
        self.history.append(
            EntryKind.system,
            "Starting video generation... This can take several minutes. "
            f"Polling for status every {self.poll_interval:g} seconds.",
        )
        self.history.append(EntryKind.output, await self.service.generate_video(prompt))
