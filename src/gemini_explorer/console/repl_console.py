import asyncio
import logging
import os
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List, Optional

from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.completion import CompleteEvent, Completer, Completion, PathCompleter
from prompt_toolkit.document import Document
from prompt_toolkit.filters import completion_is_selected, has_completions
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings, KeyPressEvent
from prompt_toolkit.shortcuts import PromptSession
from prompt_toolkit.styles import Style
from rich.panel import Panel

from gemini_explorer.console.commands import COMMANDS, CommandSpec
from gemini_explorer.console.dispatcher import CommandDispatcher
from gemini_explorer.console.rendering import HistoryRenderer, console, render_entry
from gemini_explorer.runtime_config import GEMINI_API_KEY_ENV, RuntimeConfig

logger = logging.getLogger(__name__)


class CommandCompleterHandler:
    """Encapsulates console commands: completion, suggestion and style settings."""

    style: Style = Style.from_dict(
        {
            "completion-menu": "noinherit",
            "completion-menu.completion": "noinherit",
            "completion-menu.scrollbar": "noinherit",
            "completion-menu.completion.current": "noinherit bold",
            "scrollbar": "noinherit",
            "scrollbar.background": "noinherit",
            "scrollbar.button": "noinherit",
            "bottom-toolbar": "noreverse",
        }
    )

    def __init__(self, commands: Optional[List[CommandSpec]] = None) -> None:
        self._commands = commands if commands is not None else COMMANDS

    @property
    def completer(self) -> Completer:
        handler = self

        class _CommandCompleter(Completer):
            def get_completions(
                self, document: Document, complete_event: CompleteEvent
            ) -> Generator[Completion, None, None]:
                text = document.text_before_cursor
                # Only the command word is completed
                if not text or " " in text:
                    return
                for cmd in handler._commands:
                    if cmd.name.startswith(text.lower()):
                        display = f"{cmd.signature:<24} {cmd.description}"
                        yield Completion(
                            cmd.name, start_position=-len(text), display=display
                        )

        return _CommandCompleter()

    @property
    def auto_suggest(self) -> AutoSuggest:
        handler = self

        class _CommandAutoSuggest(AutoSuggest):
            def get_suggestion(
                self, buffer: Buffer, document: Document
            ) -> Optional[Suggestion]:
                text = document.text
                if not text or " " in text:
                    return None
                for cmd in handler._commands:
                    if cmd.name.startswith(text.lower()) and cmd.name != text.lower():
                        return Suggestion(cmd.name[len(text) :])
                return None

        return _CommandAutoSuggest()

    @staticmethod
    def on_completions_changed(buf: Buffer) -> None:
        state = buf.complete_state
        if state and state.complete_index is None:
            state.complete_index = 0


class PromptFilePicker:
    """Asks for an image path on the terminal, with path completion."""

    def __init__(self) -> None:
        self._session: PromptSession[str] = PromptSession(
            completer=PathCompleter(expanduser=True),
            complete_while_typing=True,
        )

    async def pick_file(self) -> Optional[Path]:
        try:
            # The REPL owns SIGINT while a command runs; Ctrl+C arrives as a key here
            text = await self._session.prompt_async(
                "image file (empty to cancel)› ", handle_sigint=False
            )
        except (KeyboardInterrupt, EOFError):
            return None
        text = text.strip()
        if not text:
            return None
        return Path(text).expanduser()


class PromptKeySelector:
    """Lets the user paste an API key when none is usable for video generation."""

    def __init__(self) -> None:
        self._session: PromptSession[str] = PromptSession()
        self._rejected_key: Optional[str] = None

    async def has_selected_api_key(self) -> bool:
        key = os.environ.get(GEMINI_API_KEY_ENV)
        return bool(key) and key != self._rejected_key

    async def open_select_key(self) -> None:
        console.print(
            "[yellow]SYSTEM:[/yellow] Video generation needs an API key with access "
            "to the video model."
        )
        try:
            key = await self._session.prompt_async(
                "API key› ", is_password=True, handle_sigint=False
            )
        except (KeyboardInterrupt, EOFError):
            return
        key = key.strip()
        if key:
            os.environ[GEMINI_API_KEY_ENV] = key
            self._rejected_key = None
            logger.info("API key selected for video generation")

    def mark_invalid(self, api_key: str) -> None:
        self._rejected_key = api_key


class ReplConsole:
    """Console that runs interactive REPL mode."""

    dispatcher: CommandDispatcher
    prompt_session: Optional[PromptSession[str]]

    def __init__(self, dispatcher: CommandDispatcher, config: RuntimeConfig) -> None:
        self.dispatcher = dispatcher
        self.config = config
        self.prompt_session = None
        self.renderer = HistoryRenderer(config.output_dir)
        self._completer_handler = CommandCompleterHandler()

    def _get_key_bindings(self) -> KeyBindings:
        """Return the custom KeyBindings (e.g. Tab behaviour)."""
        kb = KeyBindings()

        @kb.add("enter", filter=has_completions)
        def insert_or_accept(event: KeyPressEvent) -> None:
            buffer = event.current_buffer
            state = buffer.complete_state

            if not completion_is_selected():  # user never arrowed/tabbed
                state.complete_index = state.complete_index or 0  # type: ignore
            buffer.apply_completion(state.current_completion)  # type: ignore
            buffer.cancel_completion()
            buffer.validate_and_handle()

        @kb.add("tab", filter=has_completions)
        def accept_or_cycle(event: KeyPressEvent) -> None:
            buffer = event.current_buffer
            state = buffer.complete_state

            # If there is only one completion, treat Tab like "auto-complete"
            if len(state.completions) == 1:  # type: ignore
                state.complete_index = 0  # type: ignore
                buffer.apply_completion(state.current_completion)  # type: ignore
                buffer.cancel_completion()
            # If there are multiple completes, tab should cycle through
            else:
                buffer.complete_next()

        @kb.add("tab", filter=~has_completions)
        def accept_suggestion(event: KeyPressEvent) -> None:
            buffer = event.current_buffer
            if buffer.suggestion:
                buffer.insert_text(buffer.suggestion.text)

        return kb

    @contextmanager
    def _cancel_on_interrupt(self) -> Generator[None, None, None]:
        """Route Ctrl+C to the running command instead of the REPL."""
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self._interrupt)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; Ctrl+C exits the REPL instead
            yield
            return
        try:
            yield
        finally:
            loop.remove_signal_handler(signal.SIGINT)

    def _interrupt(self) -> None:
        if self.dispatcher.cancel():
            logger.info("Running command cancelled by user")

    async def run(self) -> None:
        """Interactive REPL loop for the console interface."""
        console.print(
            Panel(
                f"[bold cyan]╭─ GEMINI API TERMINAL EXPLORER ─╮[/bold cyan]\n\n"
                f"[dim]Model:[/dim] [dim cyan]{self.config.model.value}[/dim cyan]\n"
                f"[dim]Image model:[/dim] [dim cyan]{self.config.image_model.value}[/dim cyan]\n"
                f"[dim]Video model:[/dim] [dim cyan]{self.config.video_model.value}[/dim cyan]",
                expand=False,
            )
        )
        for entry in self.dispatcher.history:
            render_entry(entry, self.config.output_dir)

        self.prompt_session = PromptSession(
            message="› ",
            history=InMemoryHistory(),
            completer=self._completer_handler.completer,
            auto_suggest=self._completer_handler.auto_suggest,
            style=self._completer_handler.style,
            complete_while_typing=True,
            key_bindings=self._get_key_bindings(),
            erase_when_done=True,
        )
        if hasattr(self.prompt_session, "default_buffer"):
            buffer = self.prompt_session.default_buffer
            buffer.on_completions_changed += self._completer_handler.on_completions_changed

        unsubscribe = self.dispatcher.history.subscribe(self.renderer)
        try:
            while True:
                logger.debug("Prompting user...")
                user_input = await self.prompt_session.prompt_async()
                if not user_input.strip():
                    continue

                if user_input.strip().lower() in ["exit", "quit"]:
                    break

                with self._cancel_on_interrupt():
                    await self.dispatcher.execute(user_input)
                    await self.dispatcher.drain()
                self.renderer.finish_stream()

        except (KeyboardInterrupt, EOFError):
            self.dispatcher.cancel()
        finally:
            unsubscribe()
