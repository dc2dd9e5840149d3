"""Command-line interface for remote transcription tasks.

Subcommands map one-to-one onto TranscriptionService operations. Results
are printed as JSON; exit codes distinguish the error kinds:

    0  success
    1  task failed or remote service error
    2  configuration or validation error
    3  polling timed out
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Callable, List, Optional

from .config import Config, get_config
from .exceptions import (
    ConfigurationError,
    PollTimeoutError,
    RemoteServiceError,
    TaskFailedError,
    TaskValidationError,
)
from .providers.tingwu import TingwuClient
from .services.transcription import TranscriptionService
from .ui.console import ConsoleManager
from .utils.logger import configure_logger

from . import __version__

EXIT_OK = 0
EXIT_TASK_ERROR = 1
EXIT_USAGE_ERROR = 2
EXIT_TIMEOUT = 3

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[Config], TranscriptionService]


def build_service(config: Config) -> TranscriptionService:
    """Create a service backed by the Tingwu API.

    Raises:
        ConfigurationError: If credentials or the app key are missing
    """
    return TranscriptionService.from_config(config, TingwuClient.from_config(config))


def setup_logging(config: Config, console: ConsoleManager, verbose: bool = False) -> None:
    """Route log records to Rich on stderr, or to a plain handler in JSON mode."""
    if console.json_output:
        configure_logger(config.log_level, file_path=config.log_file, verbose=verbose)
        return

    root = logging.getLogger()
    console.setup_logging(root)
    root.setLevel(logging.DEBUG if verbose else config.log_level)
    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(logging.Formatter(config.log_format))
        root.addHandler(file_handler)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="tingwu-tasks",
        description="Create, inspect and poll Tingwu transcription tasks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  # Submit an offline transcription and wait for it
  tingwu-tasks create https://example.com/meeting.mp3 --wait

  # Check a task, downloading result content if it completed
  tingwu-tasks status 8f1c2d --content

  # Register custom vocabulary
  tingwu-tasks vocab product-names Tingwu Qwen DashScope
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-output",
        action="store_true",
        help="Print plain JSON without styling",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands", required=True)

    create_parser_ = subparsers.add_parser("create", help="Submit an offline transcription task")
    create_parser_.add_argument("file_url", help="URL of the audio/video file")
    create_parser_.add_argument("--language", default="cn", help="Source language (default: cn)")
    create_parser_.add_argument("--chapters", action="store_true", help="Enable auto chapters")
    create_parser_.add_argument("--summary", action="store_true", help="Enable summarization")
    create_parser_.add_argument("--polish", action="store_true", help="Enable text polishing")
    create_parser_.add_argument("--wait", action="store_true", help="Poll until the task completes")

    status_parser = subparsers.add_parser("status", help="Show a task's current status")
    status_parser.add_argument("job_id", help="Task id")
    status_parser.add_argument("--content", action="store_true", help="Download result content")
    status_parser.add_argument("--fresh", action="store_true", help="Bypass the local cache")

    poll_parser = subparsers.add_parser("poll", help="Poll a task until it completes")
    poll_parser.add_argument("job_id", help="Task id")
    poll_parser.add_argument("--max-attempts", type=int, default=None, help="Attempt budget")
    poll_parser.add_argument("--interval", type=float, default=None, help="Seconds between attempts")
    poll_parser.add_argument(
        "--no-content", action="store_true", help="Do not download result content"
    )

    stop_parser = subparsers.add_parser("stop", help="Stop a realtime task")
    stop_parser.add_argument("job_id", help="Task id")

    vocab_parser = subparsers.add_parser("vocab", help="Create a custom vocabulary list")
    vocab_parser.add_argument("name", help="Vocabulary name")
    vocab_parser.add_argument("words", nargs="+", help="Words to register")

    return parser


def _feature_parameters(args: argparse.Namespace) -> dict:
    parameters = {}
    if args.chapters:
        parameters["auto_chapters_enabled"] = True
    if args.summary:
        parameters["summarization_enabled"] = True
    if args.polish:
        parameters["text_polish_enabled"] = True
    return parameters


async def _run_command(
    args: argparse.Namespace, service: TranscriptionService, console: ConsoleManager
) -> Any:
    if args.command == "create":
        record = await service.create_transcription_task(
            args.file_url, source_language=args.language, parameters=_feature_parameters(args)
        )
        if args.wait and not record.is_terminal:
            console.print_stage(f"Waiting for task {record.job_id}")
            record = await service.wait_for_task(record.job_id)
            console.print_stage(f"Task {record.job_id} completed", "complete")
        return record.to_dict()
    if args.command == "status":
        record = await service.orchestrator.get_task_info(
            args.job_id, fetch_content=args.content, force_fresh=args.fresh
        )
        return record.to_dict()
    if args.command == "poll":
        record = await service.wait_for_task(
            args.job_id,
            max_attempts=args.max_attempts,
            interval=args.interval,
            fetch_content=not args.no_content,
        )
        return record.to_dict()
    if args.command == "stop":
        return (await service.stop_realtime_task(args.job_id)).to_dict()
    if args.command == "vocab":
        return (await service.create_vocabulary(args.name, args.words)).to_dict()
    raise TaskValidationError(f"Unknown command: {args.command}")


async def _execute(
    args: argparse.Namespace, service: TranscriptionService, console: ConsoleManager
) -> Any:
    try:
        return await _run_command(args, service, console)
    finally:
        await service.close()


def main(argv: Optional[List[str]] = None, service_factory: Optional[ServiceFactory] = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Arguments (defaults to sys.argv)
        service_factory: Builds the service from config (defaults to the Tingwu-backed one)

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)
    console = ConsoleManager(verbose=args.verbose, json_output=args.json_output)

    try:
        config = get_config()
        setup_logging(config, console, verbose=args.verbose)
        service = (service_factory or build_service)(config)
        payload = asyncio.run(_execute(args, service, console))
    except (ConfigurationError, TaskValidationError, ValueError) as e:
        console.print_error(str(e))
        return EXIT_USAGE_ERROR
    except PollTimeoutError as e:
        console.print_error(str(e))
        return EXIT_TIMEOUT
    except TaskFailedError as e:
        console.print_error(str(e))
        if e.record is not None:
            console.print_result(e.record.to_dict())
        return EXIT_TASK_ERROR
    except RemoteServiceError as e:
        console.print_error(str(e))
        return EXIT_TASK_ERROR
    except KeyboardInterrupt:
        logger.error("Operation cancelled by user")
        return EXIT_TASK_ERROR

    console.print_result(payload)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
