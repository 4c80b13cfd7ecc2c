"""Constants used in the project."""

import logging
import os
from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    EXIT_WARNINGS = 3
    ARCHIVE_ERROR = 4


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    # Public Business Central symbol feeds, in priority order
    DEFAULT_FEEDS = [
        "https://dynamicssmb2.pkgs.visualstudio.com/DynamicsBCPublicFeeds/_packaging/MSSymbols/nuget/v3/index.json",
        "https://dynamicssmb2.pkgs.visualstudio.com/DynamicsBCPublicFeeds/_packaging/AppSourceSymbols/nuget/v3/index.json",
    ]
    CACHE_ROOT = os.path.join(os.path.expanduser("~"), ".bc-symbol-cache")
    CONFIG_PATH = os.path.join(os.path.expanduser("~"), ".config", "alsymbols", "config.yml")
    APP_MANIFEST_FILE = "app.json"
    LOCKFILE_NAME = "symbols.lock.json"
    PAYLOAD_EXTENSION = ".app"
    PLATFORM_PACKAGE_ID = "Microsoft.Application.symbols"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    DOWNLOAD_CHUNK_SIZE = 64 * 1024

    ENV_CONFIG = "ALSYMBOLS_CONFIG"
    ENV_FEEDS = "ALSYMBOLS_FEEDS"
    ENV_CACHE_ROOT = "ALSYMBOLS_CACHE_ROOT"
    ENV_FEED_TOKEN = "ALSYMBOLS_FEED_TOKEN"
    ENV_LOG_LEVEL = "ALSYMBOLS_LOG_LEVEL"
    ENV_LOG_FORMAT = "ALSYMBOLS_LOG_FORMAT"


def _load_yaml_config(path=None):
    """Load the optional YAML configuration file and apply it to Constants.

    Looks at ``path``, then ``$ALSYMBOLS_CONFIG``, then the per-user default.
    Unknown keys are ignored; a missing file is not an error.

    Raises:
        ConfigurationError: the file exists but cannot be read or parsed.

    Returns:
        dict: The raw configuration mapping (empty when nothing was loaded).
    """
    import yaml  # pylint: disable=import-outside-toplevel
    from symbols.errors import ConfigurationError  # pylint: disable=import-outside-toplevel

    candidate = path or os.environ.get(Constants.ENV_CONFIG) or Constants.CONFIG_PATH
    if not os.path.isfile(candidate):
        if path:
            logging.getLogger(__name__).warning("Config file not found: %s", path)
        return {}

    try:
        with open(candidate, "r", encoding="utf-8") as fh:
            cfg = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Couldn't read config file {candidate}: {e}") from e
    if not isinstance(cfg, dict):
        logging.getLogger(__name__).warning("Ignoring config %s: top level is not a mapping", candidate)
        return {}

    feeds = cfg.get("feeds")
    if isinstance(feeds, list):
        Constants.DEFAULT_FEEDS = [str(f).strip() for f in feeds if str(f).strip()]
    cache_root = cfg.get("cache_root")
    if isinstance(cache_root, str) and cache_root.strip():
        Constants.CACHE_ROOT = os.path.expanduser(cache_root.strip())
    timeout = cfg.get("request_timeout")
    if isinstance(timeout, (int, float)) and timeout > 0:
        Constants.REQUEST_TIMEOUT = timeout
    retries = cfg.get("retries")
    if isinstance(retries, int) and retries > 0:
        Constants.HTTP_RETRY_MAX = retries
    return cfg
