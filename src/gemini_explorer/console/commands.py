"""
The static catalogue of console commands and their argument shapes.
"""

from dataclasses import dataclass
from typing import Dict, List

from gemini_explorer.errors import UsageError


@dataclass(frozen=True)
class CommandSpec:
    """Definition of a console command: name, argument shape and description."""

    name: str
    argument: str
    description: str

    @property
    def requires_argument(self) -> bool:
        return self.argument.startswith("<")

    @property
    def usage(self) -> str:
        return f"Usage: {self.name} {self.argument}".rstrip()

    def validate(self, argument: str) -> None:
        if self.requires_argument and not argument:
            raise UsageError(self.usage)

    @property
    def signature(self) -> str:
        return f"{self.name} {self.argument}".rstrip()


COMMANDS: List[CommandSpec] = [
    CommandSpec("help", "", "Show this help message."),
    CommandSpec("clear", "", "Clear the terminal screen."),
    CommandSpec("text", "<prompt>", "Generate text from a prompt."),
    CommandSpec("stream", "<prompt>", "Stream a text response."),
    CommandSpec(
        "chat", "<message>", "Start or continue a chat. Use 'chat-reset' to start over."
    ),
    CommandSpec("chat-reset", "", "End the current chat session."),
    CommandSpec("json", "", "Get a structured JSON response (cookie recipes)."),
    CommandSpec(
        "function-call",
        "<prompt>",
        "Demonstrate function calling "
        "(e.g., 'dim the lights to 50% and make them warm white').",
    ),
    CommandSpec(
        "search", "<query>", "Answer a question using Google Search grounding."
    ),
    CommandSpec(
        "maps", "<query>", "Answer a location-based question using Google Maps grounding."
    ),
    CommandSpec("describe", "[prompt]", "Describe an image you upload."),
    CommandSpec("image", "<prompt>", "Generate an image."),
    CommandSpec("video", "<prompt>", "Generate a video (may take several minutes)."),
]

COMMANDS_BY_NAME: Dict[str, CommandSpec] = {spec.name: spec for spec in COMMANDS}


def build_help_message() -> str:
    lines = ["Gemini API Terminal Explorer. Available commands:"]
    for spec in COMMANDS:
        lines.append(f"- {spec.signature}: {spec.description}")
    return "\n".join(lines)


HELP_MESSAGE = build_help_message()
