import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Optional

import typer
from typing_extensions import Annotated

from gemini_explorer.console.console import Console, HeadlessConsole, ReplConsole
from gemini_explorer.console.dispatcher import CommandDispatcher
from gemini_explorer.console.repl_console import PromptFilePicker, PromptKeySelector
from gemini_explorer.logger import setup_logging
from gemini_explorer.operations.geolocation import Geolocator, IpGeolocator, StaticGeolocator
from gemini_explorer.operations.service import GeminiService, GenerativeService
from gemini_explorer.runtime_config import (
    DEFAULT_POLL_INTERVAL,
    GEMINI_API_KEY_ENV,
    ImageModelChoice,
    ModelChoice,
    RuntimeConfig,
    VideoModelChoice,
    load_envs,
)

# Global factory functions - set by create_app()
_service_factory: Optional[Callable[[RuntimeConfig], GenerativeService]] = None
_console_factory: Optional[Callable[[RuntimeConfig, GenerativeService], Console]] = None


def default_service_factory(config: RuntimeConfig) -> GenerativeService:
    """Default factory for creating GeminiService instances."""
    key_selector = None if config.command else PromptKeySelector()
    return GeminiService(config, key_selector=key_selector)


def build_geolocator(config: RuntimeConfig) -> Geolocator:
    if config.has_fixed_location:
        return StaticGeolocator(config.latitude, config.longitude)  # type: ignore[arg-type]
    return IpGeolocator()


def default_console_factory(config: RuntimeConfig, service: GenerativeService) -> Console:
    """Default factory for creating Console instances."""
    if config.command:
        dispatcher = CommandDispatcher(
            service,
            build_geolocator(config),
            poll_interval=config.poll_interval,
        )
        return HeadlessConsole(dispatcher, config)
    dispatcher = CommandDispatcher(
        service,
        build_geolocator(config),
        file_picker=PromptFilePicker(),
        poll_interval=config.poll_interval,
    )
    return ReplConsole(dispatcher, config)


def create_app(
    service_factory: Optional[Callable[[RuntimeConfig], GenerativeService]] = None,
    console_factory: Optional[
        Callable[[RuntimeConfig, GenerativeService], Console]
    ] = None,
) -> typer.Typer:
    """
    Create and configure the Typer application.

    Args:
        service_factory: Factory function to create GenerativeService instances
        console_factory: Factory function to create Console instances

    Returns:
        Typer application
    """
    # Load the API key and log level from .env if not already set in the environment
    load_envs()

    setup_logging()

    def main(
        api_key: Annotated[
            Optional[str],
            typer.Option(envvar=GEMINI_API_KEY_ENV, help="Gemini API key"),
        ] = None,
        model: Annotated[
            ModelChoice, typer.Option("--model", "-m", help="Gemini model to use")
        ] = ModelChoice.gemini_2_5_flash,
        image_model: Annotated[
            ImageModelChoice,
            typer.Option("--image-model", help="Model used by the image command"),
        ] = ImageModelChoice.imagen_4,
        video_model: Annotated[
            VideoModelChoice,
            typer.Option("--video-model", help="Model used by the video command"),
        ] = VideoModelChoice.veo_3_1_fast,
        poll_interval: Annotated[
            float,
            typer.Option(
                "--poll-interval",
                min=0.0,
                help="Seconds between video status checks",
            ),
        ] = DEFAULT_POLL_INTERVAL,
        max_polls: Annotated[
            Optional[int],
            typer.Option(
                "--max-polls",
                min=1,
                help="Give up on a video after this many status checks (default: no limit)",
            ),
        ] = None,
        latitude: Annotated[
            Optional[float],
            typer.Option("--latitude", help="Fixed latitude for the maps command"),
        ] = None,
        longitude: Annotated[
            Optional[float],
            typer.Option("--longitude", help="Fixed longitude for the maps command"),
        ] = None,
        output_dir: Annotated[
            Path,
            typer.Option("--output-dir", help="Directory for generated images"),
        ] = Path("."),
        command: Annotated[
            Optional[str],
            typer.Option(
                "--command",
                "-c",
                help="Run one console command and exit; use '-' to read it from stdin",
            ),
        ] = None,
    ) -> None:
        """GEMINI API TERMINAL EXPLORER - drive the Gemini API with short commands"""
        logger = logging.getLogger(__name__)

        if not api_key:
            typer.echo(
                f"Error: Gemini API key is required. Please set the {GEMINI_API_KEY_ENV} "
                "environment variable or use the --api-key option",
                err=True,
            )
            raise typer.Exit(code=1)
        # Operations read the key from the environment at call time
        os.environ[GEMINI_API_KEY_ENV] = api_key

        if (latitude is None) != (longitude is None):
            typer.echo("Error: --latitude and --longitude must be given together", err=True)
            raise typer.Exit(code=1)

        command_text = None
        if command:
            command_text = sys.stdin.read().strip() if command == "-" else command

        cfg = RuntimeConfig(
            model=model,
            image_model=image_model,
            video_model=video_model,
            poll_interval=poll_interval,
            max_polls=max_polls,
            latitude=latitude,
            longitude=longitude,
            output_dir=output_dir,
            command=command_text,
        )

        if cfg.command:
            logger.info(f"Running command in headless mode: {cfg.command}")
        else:
            logger.info(f"Starting console with model {cfg.model.value}")

        try:
            service = (_service_factory or default_service_factory)(cfg)
            console = (_console_factory or default_console_factory)(cfg, service)
            asyncio.run(console.run())
        except KeyboardInterrupt:
            print("\nExiting...")

    # Set global factory functions
    global _service_factory, _console_factory
    _service_factory = service_factory
    _console_factory = console_factory

    app = typer.Typer(rich_markup_mode=None)
    app.command()(main)

    return app


# Create default app instance for the console script entry point
app = create_app()


if __name__ == "__main__":
    app()
