"""
Valya - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for running a check pipeline against a
sequence of values.

- Loads the pipeline from a YAML file
- Mounts with the first value, updates with the rest
- Prints every on_start / on_end event as one JSON line
- Exit code reflects the final state

============================================================
USAGE
============================================================
python -m valya.cli --pipeline username.yaml alice
python -m valya.cli --pipeline username.yaml --initial ""
python -m valya.cli --pipeline username.yaml --interval 0 hello ""

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .config import OrchestratorSettings, get_config
from .exceptions import ValyaError
from .models import ValidationConfig, ValidationState
from .orchestrator import ValidationOrchestrator
from .registry import load_pipeline


EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_USAGE = 2


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "json") -> logging.Logger:
    """
    Set up structured logging on stderr.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Package logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("valya")


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="valya",
        description="Run a validation pipeline against a sequence of values",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
The first VALUE mounts the orchestrator; each further VALUE is a change.
With --interval 0 later values supersede runs still in flight, so only
the last value's outcome is reported.

Examples:
  %(prog)s --pipeline username.yaml alice
  %(prog)s --pipeline username.yaml --initial ""
  %(prog)s --pipeline username.yaml --interval 0 hello ""
        """,
    )

    parser.add_argument(
        "values",
        nargs="+",
        metavar="VALUE",
        help="Values to validate, in order",
    )

    parser.add_argument(
        "--pipeline", "-p",
        required=True,
        metavar="PATH",
        help="YAML file listing the checks",
    )

    parser.add_argument(
        "--initial",
        action="store_true",
        help="Validate the first value on mount",
    )

    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Delay between values; omit to wait for each run to settle",
    )

    parser.add_argument(
        "--settings",
        metavar="PATH",
        help="YAML settings file (default: environment)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default="text",
        help="Logging format (default: text)",
    )

    return parser


def validate_args(args: argparse.Namespace) -> List[str]:
    """Return a list of argument errors."""
    errors = []
    if args.interval is not None and args.interval < 0:
        errors.append("--interval must be >= 0")
    return errors


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def _emit(event: str, **fields: Any) -> None:
    record: Dict[str, Any] = {"event": event}
    record.update(fields)
    print(json.dumps(record, default=str), flush=True)


async def async_main(args: argparse.Namespace, settings: OrchestratorSettings) -> int:
    """
    Async main entry point.

    Returns:
        Exit code
    """
    validators = load_pipeline(args.pipeline)
    first, rest = args.values[0], args.values[1:]

    def on_start() -> None:
        _emit("start", value=orchestrator.config.value, generation=orchestrator.current_generation)

    def on_end(state: ValidationState) -> None:
        _emit("end", generation=orchestrator.current_generation, **state.to_dict())

    orchestrator = ValidationOrchestrator(
        ValidationConfig(
            validators=validators,
            value=first,
            initial_validation=args.initial,
            on_start=on_start,
            on_end=on_end,
        ),
        settings=settings,
    )

    orchestrator.mount()
    for value in rest:
        if args.interval is None:
            await orchestrator.wait_idle()
        elif args.interval > 0:
            await asyncio.sleep(args.interval)
        orchestrator.update(value=value)

    await orchestrator.wait_idle()
    _emit("final", **orchestrator.state.to_dict())
    return EXIT_VALID if orchestrator.is_valid else EXIT_INVALID


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return EXIT_USAGE

    setup_logging(args.log_level, args.log_format)

    try:
        settings = OrchestratorSettings.from_yaml(args.settings) if args.settings else get_config()
        return asyncio.run(async_main(args, settings))
    except ValyaError as e:
        logging.error(f"{e.message}", extra={"details": e.details})
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_USAGE
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
