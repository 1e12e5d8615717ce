import argparse
import os
from functools import lru_cache
from pathlib import Path


@lru_cache
def get_cli_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sluice-copy",
        description=(
            "Copy a file to another with backpressure.\n\n"
            "Data is streamed in chunks: reading pauses whenever the "
            "destination cannot keep up, so memory use stays bounded "
            "whatever the size of the input."
        ),
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument(
        "source",
        type=str,
        help="File to read from, or '-' for standard input"
    )

    parser.add_argument(
        "destination",
        type=str,
        help="File to write to, or '-' for standard output"
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Path to a sluice configuration file"
    )

    parser.add_argument(
        "-l", "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help=(
            "Logging verbosity, written to standard error.\n"
            "Choose among: DEBUG, INFO, WARNING, ERROR, CRITICAL.\n\n"
            "DEBUG    → every throttle and drain of the copy.\n"
            "INFO     → start and end of the copy.\n"
            "WARNING  → only warnings and errors (default).\n\n"
            "Example:\n"
            "  --log-level DEBUG"
        ),
    )

    return parser.parse_args()


@lru_cache
def get_configfile() -> Path | None:
    args = get_cli_args()

    # Priority: CLI > ENV > default file in current working directory
    raw = args.config or os.getenv("SLUICECONFIG")

    if raw is None:
        file = Path.cwd() / "sluice.yaml"
        return file if file.is_file() else None

    file = Path(raw)
    if not file.is_file():
        raise SystemExit(
            f"[config] Configuration file not found: '{file}'.\n"
            "  - Check the path given to --config\n"
            "  - Or the SLUICECONFIG environment variable\n"
            "  - Or remove both to use 'sluice.yaml' from the current directory, if any."
        )

    return file
