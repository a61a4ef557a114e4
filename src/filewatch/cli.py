"""CLI entry point for filewatch."""

import argparse
import asyncio
import logging
import sys

from filewatch import __version__
from filewatch.app import FileWatch
from filewatch.config import WatchConfig
from filewatch.errors import FilewatchError

logger = logging.getLogger("filewatch")

LOG_FORMAT = "%(asctime)s %(message)s"
LOG_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Both the single-dash spellings (``-filenames``) and GNU style
    (``--filenames``) are accepted.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="filewatch",
        description="Watch files matching glob patterns and re-run a command when they change.",
        epilog="Examples:\n"
        "  filewatch -filenames 'src/**/*.py' -t 1 -command 'pytest -q'\n"
        "  filewatch --filenames '*.go' --initial --command 'go build ./...'\n"
        "  filewatch --filenames 'build/out.txt'   # exit on the first change",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-filenames",
        "--filenames",
        default="",
        help="files to watch separated by commas (glob patterns, ** allowed)",
    )
    parser.add_argument(
        "-t",
        "--t",
        type=_non_negative_int,
        default=0,
        help="debounce interval in seconds (default: 0)",
    )
    parser.add_argument("-verbose", "--verbose", action="store_true", help="verbose mode")
    parser.add_argument(
        "-command",
        "--command",
        default="",
        help="command to execute; empty means exit on the first change",
    )
    parser.add_argument(
        "-initial",
        "--initial",
        action="store_true",
        help="run command before any change happens",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    """Send filewatch logs to stderr, DEBUG when verbose."""
    logging.basicConfig(format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT, stream=sys.stderr)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for filewatch CLI.

    Handles:
    - Argument parsing and logging setup
    - Running the watch loop
    - Error handling and exit codes
    """
    config = WatchConfig.from_args(parse_args(argv))
    configure_logging(config.verbose)

    try:
        exit_code = asyncio.run(FileWatch(config).run())
    except KeyboardInterrupt:
        sys.exit(130)
    except FilewatchError as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
