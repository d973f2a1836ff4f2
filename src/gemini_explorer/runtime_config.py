"""
Runtime configuration for the Gemini explorer console.

This module provides:
- load_envs(): load GEMINI_API_KEY from a .env file if it is not already present
  in the environment.
- get_api_key(): read the credential from the process environment at call time.
- RuntimeConfig: a dataclass holding runtime settings, including model choices,
  video polling options, an optional fixed location and the headless command.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from gemini_explorer.errors import ConfigurationError

# Environment variable names for credentials and settings
GEMINI_API_KEY_ENV: str = "GEMINI_API_KEY"
LOG_LEVEL_ENV: str = "GEMINI_EXPLORER_LOG_LEVEL"

DEFAULT_POLL_INTERVAL: float = 10.0


def load_envs(env_file: Optional[str] = None) -> None:
    """
    Load GEMINI_API_KEY and GEMINI_EXPLORER_LOG_LEVEL from a .env file into the
    process environment if they are not already set.
    """
    env_values = dotenv_values(env_file) if env_file else dotenv_values()
    for key in (GEMINI_API_KEY_ENV, LOG_LEVEL_ENV):
        if not os.environ.get(key):
            val = env_values.get(key)
            if val:
                os.environ[key] = str(val)


def get_api_key() -> str:
    """Return the API key from the environment, failing when it is missing."""
    api_key = os.environ.get(GEMINI_API_KEY_ENV)
    if not api_key:
        raise ConfigurationError(f"{GEMINI_API_KEY_ENV} environment variable not set.")
    return api_key


class ModelChoice(str, Enum):
    """Supported text model choices."""

    gemini_2_5_flash = "gemini-2.5-flash"
    gemini_2_5_pro = "gemini-2.5-pro"
    gemini_2_5_flash_lite = "gemini-2.5-flash-lite"


class ImageModelChoice(str, Enum):
    """Supported image generation model choices."""

    imagen_4 = "imagen-4.0-generate-001"
    imagen_4_fast = "imagen-4.0-fast-generate-001"
    imagen_4_ultra = "imagen-4.0-ultra-generate-001"


class VideoModelChoice(str, Enum):
    """Supported video generation model choices."""

    veo_3_1_fast = "veo-3.1-fast-generate-preview"
    veo_3_1 = "veo-3.1-generate-preview"


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Holds runtime configuration for the Gemini explorer console.

    Attributes:
        model: Model used for text, chat, JSON, function-call, grounding and describe.
        image_model: Model used by the image command.
        video_model: Model used by the video command.
        poll_interval: Seconds to wait between video operation polls.
        max_polls: Upper bound on video polls; None polls until the job is done.
        latitude: Fixed latitude for the maps command (skips IP lookup when set
            together with longitude).
        longitude: Fixed longitude for the maps command.
        output_dir: Directory where generated images are written.
        command: Command line to run in headless mode (if provided).
    """

    model: ModelChoice = ModelChoice.gemini_2_5_flash
    image_model: ImageModelChoice = ImageModelChoice.imagen_4
    video_model: VideoModelChoice = VideoModelChoice.veo_3_1_fast
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_polls: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    output_dir: Path = field(default_factory=Path.cwd)
    command: Optional[str] = None

    @property
    def has_fixed_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def get_data_dir() -> Path:
    """
    Return the Gemini explorer data directory under XDG_DATA_HOME or fallback to ~/.local/share.
    """
    data_home = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return data_home / "gemini_explorer"
