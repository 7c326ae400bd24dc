"""
Command-line interface for pyloc.

This module parses the command line, merges it with the optional YAML
configuration and dispatches to the ``inspect``, ``extract``, ``create`` and
``check`` operations.
"""

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import NamedTuple

from .config import ConfigManager, PylocConfig
from .exceptions import ConfigurationError
from .locer import ALL_LOCALES, Locer, RunReport
from .logging_setup import setup_logging

logger = logging.getLogger(__name__)


class ParsedArgs(NamedTuple):
    """Container for parsed command-line arguments."""

    command: str
    paths: list[Path]
    config_file: Path | None
    locale: str | None
    overrides: dict[str, object]
    verbose: bool
    trace: bool


def get_version() -> str:
    try:
        return version("pyloc")
    except PackageNotFoundError:
        return "unknown"


def split_names(value: str) -> list[str]:
    """Split a comma-separated list of function names."""
    return [name.strip() for name in value.split(",") if name.strip()]


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser for pyloc.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="pyloc",
        description="Extract translatable strings from Python sources and manage their translations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pyloc --funcs reply --fmtfuncs replyf inspect app/
    List the literals that would be extracted

  pyloc --funcs reply --fmtfuncs replyf -a extract app/
    Rewrite the sources in place and update trans/

  pyloc create -c fr
    Start a French translation from the default locale

  pyloc check -c all
    Validate every locale against the default locale
""",
    )

    _ = parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML configuration file (default: pyloc.yml if present)",
        metavar="PATH",
    )
    _ = parser.add_argument(
        "--funcs",
        type=split_names,
        default=None,
        help="Comma-separated functions whose first string argument is translatable",
        metavar="NAMES",
    )
    _ = parser.add_argument(
        "--fmtfuncs",
        type=split_names,
        default=None,
        help="Comma-separated printf-style functions whose first string argument is translatable",
        metavar="NAMES",
    )
    _ = parser.add_argument(
        "-l",
        "--lang",
        default=None,
        help="Default locale extracted from source (default: en-GB)",
        metavar="LOCALE",
    )
    _ = parser.add_argument(
        "-a",
        "--apply",
        action="store_true",
        default=None,
        help="Overwrite the source files instead of printing the rewritten source",
    )
    _ = parser.add_argument(
        "--translations-dir",
        type=Path,
        default=None,
        help="Root directory of the translation records (default: trans)",
        metavar="PATH",
    )
    _ = parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of threads used for directory inputs (default: 1)",
        metavar="N",
    )
    _ = parser.add_argument("-v", "--debug", action="store_true", help="Add extra verbosity")
    _ = parser.add_argument("-V", "--trace", action="store_true", help="Add trace verbosity")
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")

    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    inspect_parser = subparsers.add_parser("inspect", help="List all appropriate strings in the given files")
    _ = inspect_parser.add_argument("paths", nargs="*", type=Path, metavar="PATH")

    extract_parser = subparsers.add_parser("extract", help="Extract all strings and rewrite their call sites")
    _ = extract_parser.add_argument("paths", nargs="*", type=Path, metavar="PATH")

    create_parser = subparsers.add_parser("create", help="Create a new locale from the default locale")
    _ = create_parser.add_argument(
        "-c", "--create", dest="locale", default=None, help="Locale to create", metavar="LOCALE"
    )

    check_parser = subparsers.add_parser("check", help="Check the integrity of the translation records")
    _ = check_parser.add_argument(
        "-c",
        "--check",
        dest="locale",
        default=ALL_LOCALES,
        help="Locale to check, or 'all' (default: %(default)s)",
        metavar="LOCALE",
    )

    return parser


def parse_arguments(args: list[str] | None = None) -> ParsedArgs:
    """
    Parse command-line arguments.

    Args:
        args: List of arguments to parse (defaults to sys.argv[1:])

    Returns:
        ParsedArgs with configuration overrides collected from the flags

    Raises:
        SystemExit: If argument parsing fails or --help is requested
    """
    parser = create_argument_parser()
    parsed = parser.parse_args(args)

    command: str = getattr(parsed, "command", "")
    paths: list[Path] = getattr(parsed, "paths", [])
    overrides: dict[str, object] = {
        "funcs": getattr(parsed, "funcs", None),
        "fmt_funcs": getattr(parsed, "fmtfuncs", None),
        "default_locale": getattr(parsed, "lang", None),
        "apply": getattr(parsed, "apply", None),
        "translations_dir": getattr(parsed, "translations_dir", None),
        "workers": getattr(parsed, "workers", None),
    }

    return ParsedArgs(
        command=command,
        paths=paths,
        config_file=getattr(parsed, "config", None),
        locale=getattr(parsed, "locale", None),
        overrides=overrides,
        verbose=bool(getattr(parsed, "debug", False)),
        trace=bool(getattr(parsed, "trace", False)),
    )


def run(parsed_args: ParsedArgs, config: PylocConfig) -> RunReport:
    """
    Run one command.

    Raises:
        ConfigurationError: If ``create`` is given an invalid locale
        FileNotFoundError: If an input path does not exist
    """
    locer = Locer(config)
    match parsed_args.command:
        case "inspect":
            return locer.inspect_paths(parsed_args.paths)
        case "extract":
            return locer.extract_paths(parsed_args.paths)
        case "create":
            if not parsed_args.locale:
                logger.error("No language to create specified")
                locer.report.add_error("no language to create specified")
                return locer.report
            _ = locer.create(parsed_args.locale)
            return locer.report
        case "check":
            _ = locer.check(parsed_args.locale or ALL_LOCALES)
            return locer.report
        case _:
            raise ValueError(f"Unknown command: {parsed_args.command}")


def main(args: list[str] | None = None) -> int:
    """
    Entry point of the ``pyloc`` command.

    Returns:
        Process exit code: 0 on success, 1 if any error or violation was recorded
    """
    parsed_args = parse_arguments(args)
    setup_logging(verbose=parsed_args.verbose, trace=parsed_args.trace)

    try:
        config = ConfigManager.resolve_config(parsed_args.config_file, parsed_args.overrides)
        report = run(parsed_args, config)
    except (ConfigurationError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.exception(f"pyloc failed: {e}")
        return 1

    if report.failed:
        logger.error(f"Finished with problems: {report.summary()}")
    else:
        logger.info(f"Done: {report.summary()}")
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
