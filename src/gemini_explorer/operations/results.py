"""
Typed results returned by the generative operations.

Renderers branch on the result type rather than sniffing the content of
strings, so every operation returns one of these variants.
"""

from dataclasses import dataclass, field
from typing import List, Literal, Union


@dataclass
class TextResult:
    """Model text; ``streaming`` marks an entry that grows chunk by chunk."""

    text: str
    format: Literal["markdown", "json"] = "markdown"
    streaming: bool = False


@dataclass(frozen=True)
class ImageResult:
    """A generated image carried inline as base64."""

    data_base64: str
    mime_type: str = "image/jpeg"

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data_base64}"


@dataclass(frozen=True)
class VideoResult:
    """A generated video; the URI already carries the access key."""

    uri: str


@dataclass(frozen=True)
class Source:
    title: str
    uri: str


@dataclass
class SourcedResult:
    """Grounded answer text plus the sources the model cited."""

    text: str
    sources: List[Source] = field(default_factory=list)
    heading: str = "Sources:"


OperationResult = Union[TextResult, ImageResult, VideoResult, SourcedResult]
