import base64
import mimetypes
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console, ConsoleOptions, RenderResult
from rich.markdown import Heading, Markdown
from rich.markup import escape
from rich.syntax import Syntax

from gemini_explorer.console.state import EntryKind, HistoryEntry
from gemini_explorer.operations.results import (
    ImageResult,
    SourcedResult,
    TextResult,
    VideoResult,
)


# Classes to override the default Markdown renderer
class PlainHeading(Heading):
    """Left-aligned, no panel."""

    def __rich_console__(
        self, console: Console, options: ConsoleOptions
    ) -> RenderResult:
        self.text.justify = "left"
        yield self.text


# Apply override globally for Markdown
Markdown.elements["heading_open"] = PlainHeading


console = Console()


def clear_terminal() -> None:
    """Clear the terminal screen."""
    os.system("cls" if os.name == "nt" else "clear")


def save_image(result: ImageResult, output_dir: Path) -> Path:
    """Decode an inline image into ``output_dir`` and return the file path."""
    extension = mimetypes.guess_extension(result.mime_type) or ".img"
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    path = output_dir / f"image-{stamp}{extension}"
    path.write_bytes(base64.b64decode(result.data_base64))
    return path


def _render_text(result: TextResult) -> None:
    if result.format == "json":
        console.print(Syntax(result.text, "json", theme="nord", word_wrap=True))
    else:
        console.print(Markdown(result.text, code_theme="nord", hyperlinks=True))


def _render_sourced(result: SourcedResult) -> None:
    console.print(Markdown(result.text, code_theme="nord", hyperlinks=True))
    if result.sources:
        console.print()
        console.print(f"[bold green]{escape(result.heading)}[/bold green]")
        for source in result.sources:
            console.print(
                f"  • [link={source.uri}][blue underline]{escape(source.title)}"
                f"[/blue underline][/link] [dim]{escape(source.uri)}[/dim]"
            )


def render_entry(entry: HistoryEntry, output_dir: Optional[Path] = None) -> None:
    """Render a single history entry via Rich."""
    content = entry.content
    if entry.kind == EntryKind.command:
        console.print(f"[cyan]›[/cyan] [dim]{escape(str(content))}[/dim]")
    elif entry.kind == EntryKind.system:
        console.print(f"[yellow]SYSTEM:[/yellow] {escape(str(content))}")
    elif entry.kind == EntryKind.error:
        console.print(f"[bold red]ERROR: {escape(str(content))}[/bold red]")
    elif isinstance(content, TextResult):
        console.print("[bold cyan]gemini:[/bold cyan]")
        _render_text(content)
    elif isinstance(content, SourcedResult):
        console.print("[bold cyan]gemini:[/bold cyan]")
        _render_sourced(content)
    elif isinstance(content, ImageResult):
        path = save_image(content, output_dir or Path.cwd())
        console.print(f"[green]Image generated and saved to[/green] {escape(str(path))}")
    elif isinstance(content, VideoResult):
        console.print("[green]Video generated successfully. Download link:[/green]")
        console.print(f"[link={content.uri}][blue underline]{escape(content.uri)}[/blue underline][/link]")
    else:
        console.print(escape(str(content)))
    console.print()


class HistoryRenderer:
    """Prints history entries as they are appended.

    A streamed output entry is flagged on its TextResult; its text is printed as it grows
    and the line is closed when the next entry arrives.
    """

    def __init__(self, output_dir: Optional[Path] = None) -> None:
        self.output_dir = output_dir
        self._streaming = False

    def finish_stream(self) -> None:
        """Close a streamed entry that is still open."""
        if self._streaming:
            console.print()
            console.print()
            self._streaming = False

    def on_append(self, entry: HistoryEntry) -> None:
        self.finish_stream()
        content = entry.content
        if (
            entry.kind == EntryKind.output
            and isinstance(content, TextResult)
            and content.streaming
        ):
            console.print("[bold cyan]gemini:[/bold cyan]")
            self._streaming = True
            return
        render_entry(entry, self.output_dir)

    def on_extend(self, entry: HistoryEntry, text: str) -> None:
        console.print(escape(text), end="")

    def on_reset(self, entry: HistoryEntry) -> None:
        self._streaming = False
        clear_terminal()
        render_entry(entry, self.output_dir)
