import asyncio
from pathlib import Path

import pytest
from conftest import FakeFilePicker, FakeGeolocator, FakeService

from gemini_explorer.console.commands import HELP_MESSAGE
from gemini_explorer.console.dispatcher import CommandDispatcher, parse_command_line
from gemini_explorer.console.state import WELCOME_MESSAGE, EntryKind
from gemini_explorer.errors import InvalidApiKeyError
from gemini_explorer.operations.geolocation import Coordinates
from gemini_explorer.operations.results import ImageResult, TextResult, VideoResult


def kinds(dispatcher: CommandDispatcher) -> list[EntryKind]:
    return [entry.kind for entry in dispatcher.history]


def test_parse_command_line_splits_on_first_whitespace() -> None:
    assert parse_command_line("TEXT  hello   world") == ("text", "hello   world")
    assert parse_command_line("json") == ("json", "")
    assert parse_command_line("   ") == ("", "")


@pytest.mark.asyncio
async def test_unknown_command_reports_error_and_stays_idle(
    dispatcher: CommandDispatcher, fake_service: FakeService
) -> None:
    await dispatcher.execute("frobnicate now")

    last = dispatcher.history.last
    assert last.kind == EntryKind.error
    assert last.content == (
        "Command not found: frobnicate. Type 'help' for a list of commands."
    )
    assert dispatcher.busy is False
    assert fake_service.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "command, usage",
    [
        ("text", "Usage: text <prompt>"),
        ("stream", "Usage: stream <prompt>"),
        ("chat", "Usage: chat <message>"),
        ("function-call", "Usage: function-call <prompt>"),
        ("search", "Usage: search <query>"),
        ("maps", "Usage: maps <query>"),
        ("image", "Usage: image <prompt>"),
        ("video", "Usage: video <prompt>"),
    ],
)
async def test_missing_argument_reports_usage_without_calling_service(
    dispatcher: CommandDispatcher,
    fake_service: FakeService,
    geolocator: FakeGeolocator,
    command: str,
    usage: str,
) -> None:
    await dispatcher.execute(command)

    errors = [e for e in dispatcher.history if e.kind == EntryKind.error]
    assert [e.content for e in errors] == [usage]
    assert fake_service.calls == []
    assert geolocator.calls == 0
    assert dispatcher.busy is False


@pytest.mark.asyncio
async def test_recognised_command_is_recorded_before_its_output(
    dispatcher: CommandDispatcher,
) -> None:
    await dispatcher.execute("text Tell me a joke")

    entries = dispatcher.history.entries
    assert entries[-2].kind == EntryKind.command
    assert entries[-2].content == "text Tell me a joke"
    assert entries[-1].kind == EntryKind.output
    assert entries[-1].content == TextResult("text:Tell me a joke")
    assert dispatcher.busy is False


@pytest.mark.asyncio
async def test_help_lists_commands(dispatcher: CommandDispatcher) -> None:
    await dispatcher.execute("help")
    assert dispatcher.history.last.kind == EntryKind.system
    assert dispatcher.history.last.content == HELP_MESSAGE
    assert "video <prompt>" in HELP_MESSAGE


@pytest.mark.asyncio
async def test_clear_leaves_only_the_welcome_entry(dispatcher: CommandDispatcher) -> None:
    for line in ("help", "text one", "bogus", "json"):
        await dispatcher.execute(line)
    assert len(dispatcher.history) > 1

    await dispatcher.execute("clear")

    assert len(dispatcher.history) == 1
    only = dispatcher.history.last
    assert only.kind == EntryKind.system
    assert only.content == WELCOME_MESSAGE


@pytest.mark.asyncio
async def test_stream_builds_one_output_entry(
    dispatcher: CommandDispatcher,
) -> None:
    await dispatcher.execute("stream say hello")

    outputs = [e for e in dispatcher.history if e.kind == EntryKind.output]
    assert len(outputs) == 1
    assert isinstance(outputs[0].content, TextResult)
    assert outputs[0].content.text == "Hello"
    assert outputs[0].content.streaming is True
    assert dispatcher.busy is False


@pytest.mark.asyncio
async def test_stream_failure_keeps_partial_text(
    dispatcher: CommandDispatcher, fake_service: FakeService
) -> None:
    fake_service.chunks = ["partial "]
    fake_service.stream_error = RuntimeError("connection reset")

    await dispatcher.execute("stream go")

    outputs = [e for e in dispatcher.history if e.kind == EntryKind.output]
    errors = [e for e in dispatcher.history if e.kind == EntryKind.error]
    assert outputs[0].content.text == "partial "  # type: ignore[union-attr]
    assert [e.content for e in errors] == ["connection reset"]
    assert dispatcher.busy is False


@pytest.mark.asyncio
async def test_chat_reuses_session_until_reset(
    dispatcher: CommandDispatcher, fake_service: FakeService
) -> None:
    await dispatcher.execute("chat hi")
    await dispatcher.execute("text unrelated")
    await dispatcher.execute("chat again")

    started = [e for e in dispatcher.history if e.content == "New chat session started."]
    assert len(started) == 1
    assert len(fake_service.chats) == 1
    assert fake_service.chats[0].messages == ["hi", "again"]

    await dispatcher.execute("chat-reset")
    assert dispatcher.chat_session is None
    assert dispatcher.history.last.content == "Chat session reset."

    await dispatcher.execute("chat fresh start")

    started = [e for e in dispatcher.history if e.content == "New chat session started."]
    assert len(started) == 2
    assert len(fake_service.chats) == 2
    assert dispatcher.history.last.content == TextResult("reply 2:fresh start")


@pytest.mark.asyncio
async def test_json_announces_request(dispatcher: CommandDispatcher) -> None:
    await dispatcher.execute("json")
    entries = dispatcher.history.entries
    assert entries[-2].content == "Requesting JSON response..."
    assert isinstance(entries[-1].content, TextResult)
    assert entries[-1].content.format == "json"


@pytest.mark.asyncio
async def test_service_error_becomes_single_error_entry(
    dispatcher: CommandDispatcher, fake_service: FakeService
) -> None:
    fake_service.error = RuntimeError("quota exceeded")

    await dispatcher.execute("text hello")

    assert dispatcher.history.last.kind == EntryKind.error
    assert dispatcher.history.last.content == "quota exceeded"
    assert dispatcher.busy is False

    fake_service.error = None
    await dispatcher.execute("text again")
    assert dispatcher.history.last.content == TextResult("text:again")


@pytest.mark.asyncio
async def test_invalid_video_key_adds_retry_guidance(
    dispatcher: CommandDispatcher, fake_service: FakeService
) -> None:
    fake_service.error = InvalidApiKeyError(
        "API key is invalid or not found. Please select a valid key."
    )

    await dispatcher.execute("video a cat surfing")

    entries = dispatcher.history.entries
    assert entries[-2].kind == EntryKind.error
    assert entries[-1].kind == EntryKind.system
    assert entries[-1].content == (
        "Please try the 'video' command again to re-trigger API key selection."
    )


@pytest.mark.asyncio
async def test_video_announces_polling_and_returns_link(
    dispatcher: CommandDispatcher,
) -> None:
    await dispatcher.execute("video a cat surfing")

    entries = dispatcher.history.entries
    assert entries[-2].content == (
        "Starting video generation... This can take several minutes. "
        "Polling for status every 10 seconds."
    )
    assert entries[-1].content == VideoResult(uri="https://host/vid?x=1&key=K")


@pytest.mark.asyncio
async def test_image_output_is_inline_jpeg(dispatcher: CommandDispatcher) -> None:
    await dispatcher.execute("image a red fox")
    result = dispatcher.history.last.content
    assert isinstance(result, ImageResult)
    assert result.data_uri == "data:image/jpeg;base64,aW1n"


@pytest.mark.asyncio
async def test_maps_holds_busy_until_lookup_finishes(
    dispatcher: CommandDispatcher, fake_service: FakeService
) -> None:
    accepted = await dispatcher.execute("maps coffee near me")
    assert accepted is True
    assert dispatcher.busy is True
    assert await dispatcher.execute("text too soon") is False

    await dispatcher.drain()

    contents = [e.content for e in dispatcher.history]
    assert "Requesting geolocation..." in contents
    assert "Location found: 51.5074, -0.1278" in contents
    assert fake_service.calls[0][0] == "search_maps"
    assert dispatcher.history.last.kind == EntryKind.output
    assert dispatcher.busy is False


@pytest.mark.asyncio
async def test_maps_geolocation_failure_skips_api_call(fake_service: FakeService) -> None:
    dispatcher = CommandDispatcher(
        fake_service, FakeGeolocator(error="User denied Geolocation")
    )

    await dispatcher.execute("maps coffee")
    await dispatcher.drain()

    assert dispatcher.history.last.kind == EntryKind.error
    assert dispatcher.history.last.content == "Geolocation failed: User denied Geolocation"
    assert fake_service.calls == []
    assert dispatcher.busy is False


@pytest.mark.asyncio
async def test_describe_reads_selected_file(
    fake_service: FakeService, geolocator: FakeGeolocator, tmp_path: Path
) -> None:
    image = tmp_path / "cat.png"
    image.write_bytes(b"png-bytes")
    dispatcher = CommandDispatcher(
        fake_service, geolocator, file_picker=FakeFilePicker([image])
    )

    await dispatcher.execute("describe")
    assert dispatcher.busy is True
    await dispatcher.drain()

    contents = [e.content for e in dispatcher.history]
    assert "Please select an image file to describe." in contents
    assert "Describing image: cat.png..." in contents
    name, args = fake_service.calls[0]
    assert name == "describe_image"
    assert args == ("What is in this image?", "cG5nLWJ5dGVz", "image/png")
    assert dispatcher.history.last.content == TextResult("described:What is in this image?")
    assert dispatcher.pending_upload is None
    assert dispatcher.busy is False


@pytest.mark.asyncio
async def test_describe_cancel_returns_to_idle(
    fake_service: FakeService, geolocator: FakeGeolocator
) -> None:
    dispatcher = CommandDispatcher(
        fake_service, geolocator, file_picker=FakeFilePicker([None])
    )

    await dispatcher.execute("describe what breed is this?")
    await dispatcher.drain()

    assert dispatcher.history.last.content == "Image selection cancelled."
    assert fake_service.calls == []
    assert dispatcher.pending_upload is None
    assert dispatcher.busy is False


@pytest.mark.asyncio
async def test_describe_rejects_non_image(
    fake_service: FakeService, geolocator: FakeGeolocator, tmp_path: Path
) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("hello")
    dispatcher = CommandDispatcher(
        fake_service, geolocator, file_picker=FakeFilePicker([notes])
    )

    await dispatcher.execute("describe")
    await dispatcher.drain()

    assert dispatcher.history.last.kind == EntryKind.error
    assert dispatcher.history.last.content == "Not an image file: notes.txt"
    assert dispatcher.busy is False


@pytest.mark.asyncio
async def test_cancel_stops_running_command(
    fake_service: FakeService, geolocator: FakeGeolocator
) -> None:
    started = asyncio.Event()

    async def slow_video(prompt: str) -> VideoResult:
        started.set()
        await asyncio.sleep(60)
        raise AssertionError("not reached")

    fake_service.generate_video = slow_video  # type: ignore[method-assign]
    dispatcher = CommandDispatcher(fake_service, geolocator)

    run = asyncio.create_task(dispatcher.execute("video slow"))
    await started.wait()
    assert dispatcher.cancel() is True
    await run

    assert dispatcher.history.last.content == "Command cancelled."
    assert dispatcher.busy is False
    assert dispatcher.cancel() is False


class StalledGeolocator(FakeGeolocator):
    async def locate(self) -> Coordinates:
        self.calls += 1
        await asyncio.Event().wait()
        raise AssertionError("not reached")


def test_loop_shutdown_is_not_reported_as_user_cancel(fake_service: FakeService) -> None:
    geolocator = StalledGeolocator()
    dispatcher = CommandDispatcher(fake_service, geolocator)

    async def leave_command_running() -> None:
        await dispatcher.execute("maps coffee")
        while geolocator.calls == 0:
            await asyncio.sleep(0)

    # asyncio.run cancels the still-running maps task on the way out
    asyncio.run(leave_command_running())

    contents = [e.content for e in dispatcher.history]
    assert "Command cancelled." not in contents
    assert contents[-1] == "Requesting geolocation..."
    assert dispatcher.busy is False
    assert fake_service.calls == []
