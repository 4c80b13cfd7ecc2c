"""alsymbols - Business Central symbol package resolver

Reads an AL app's app.json, resolves the full transitive set of symbol
packages from NuGet feeds, downloads their .app payloads into the per-app
symbol cache and writes symbols.lock.json next to them.

    Returns:
        int: Exit code
"""
import json
import logging
import os
import sys

from constants import ExitCodes
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from args import parse_args
from cli_config import apply_config, effective_cache_root, effective_feeds
from symbols.errors import ArchiveError, ConfigurationError, FeedQueryError, PackageNotFoundError
from symbols.report import render_text
from symbols.session import resolve_app

logger = logging.getLogger(__name__)


def _setup_logging(args) -> None:
    """Configure logging based on CLI arguments."""
    configure_logging(level=getattr(args, "LOG_LEVEL", None))
    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        logging.getLogger().addHandler(file_handler)
        logger.info("Logging to file: %s", log_file)


def export_json(report, path):
    """Exports the resolution report to a JSON file.

    Args:
        report (ResolutionReport): Report from the resolver.
        path (str): File path to write.
    """
    try:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(report.to_dict(), fh, indent=2)
            fh.write("\n")
        logger.info("JSON file written to %s", path)
    except OSError as e:
        logger.error("JSON file couldn't be written to disk: %s", e)
        return False
    return True


def run(args):
    """Run one resolution for parsed ``args`` and return the exit code."""
    try:
        apply_config(args)
        feeds = effective_feeds(args)
        cache_root = effective_cache_root(args)
        if is_debug_enabled(logger):
            logger.debug(
                "CLI start",
                extra=extra_context(event="function_entry", component="cli", action="run",
                                    count=len(feeds), target=os.path.abspath(args.app_dir)),
            )
        report = resolve_app(args.app_dir, cache_root, feeds, use_lockfile=not args.REFRESH)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return ExitCodes.FILE_ERROR.value
    except PackageNotFoundError as e:
        logger.error("%s", e)
        return ExitCodes.CONNECTION_ERROR.value
    except FeedQueryError as e:
        logger.error("%s", e)
        return ExitCodes.CONNECTION_ERROR.value
    except ArchiveError as e:
        logger.error("Archive error: %s", e)
        return ExitCodes.ARCHIVE_ERROR.value
    except OSError as e:
        logger.error("File error: %s", e)
        return ExitCodes.FILE_ERROR.value

    if not args.QUIET:
        for line in render_text(report):
            print(line)
    for conflict in report.conflicts:
        logger.warning(
            "Version conflict: %s requested >= %s, resolved %s (best available %s)",
            conflict.package_id, conflict.requested, conflict.resolved, conflict.available,
        )

    if args.OUTPUT and not export_json(report, args.OUTPUT):
        return ExitCodes.FILE_ERROR.value

    if report.has_conflicts and args.FAIL_ON_CONFLICTS:
        logger.error("%d version conflict(s) and --fail-on-conflicts is set", len(report.conflicts))
        return ExitCodes.EXIT_WARNINGS.value
    return ExitCodes.SUCCESS.value


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    _setup_logging(args)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
