from typing import Protocol

from gemini_explorer.console.dispatcher import CommandDispatcher
from gemini_explorer.console.rendering import HistoryRenderer, console
from gemini_explorer.console.repl_console import ReplConsole
from gemini_explorer.runtime_config import RuntimeConfig

__all__ = ["Console", "HeadlessConsole", "ReplConsole"]


class Console(Protocol):
    """Common interface for console interactions."""

    dispatcher: CommandDispatcher

    async def run(self) -> None:
        pass


class HeadlessConsole(Console):
    """Console that runs a single command line and exits."""

    def __init__(self, dispatcher: CommandDispatcher, config: RuntimeConfig) -> None:
        self.dispatcher = dispatcher
        self.config = config

    async def run(self) -> None:
        """
        Execute one command line and render everything it adds to the history.
        """
        if not self.config.command:
            raise ValueError("Command is required for headless mode")

        console.print(f"[bold cyan]Command:[/bold cyan] {self.config.command}")
        renderer = HistoryRenderer(self.config.output_dir)
        unsubscribe = self.dispatcher.history.subscribe(renderer)
        try:
            await self.dispatcher.execute(self.config.command)
            await self.dispatcher.drain()
        finally:
            renderer.finish_stream()
            unsubscribe()
