"""
Image uploads for the describe command.
"""

import base64
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from gemini_explorer.errors import UploadError

DEFAULT_DESCRIBE_PROMPT = "What is in this image?"


@dataclass(frozen=True)
class PendingUpload:
    """A describe request waiting for the user to choose a file."""

    originating_command: str
    prompt_text: str


@dataclass(frozen=True)
class EncodedImage:
    name: str
    mime_type: str
    data_base64: str


class FilePicker(Protocol):
    """Asks the user for a file; returns None when the selection is cancelled."""

    async def pick_file(self) -> Optional[Path]: ...


def read_image_file(path: Path) -> EncodedImage:
    """Read an image fully into memory and base64-encode it."""
    mime_type, _ = mimetypes.guess_type(path.name)
    if not mime_type or not mime_type.startswith("image/"):
        raise UploadError(f"Not an image file: {path.name}")
    try:
        data = path.read_bytes()
    except OSError as e:
        raise UploadError(f"Could not read {path}: {e.strerror or e}") from e
    return EncodedImage(
        name=path.name,
        mime_type=mime_type,
        data_base64=base64.b64encode(data).decode("ascii"),
    )
