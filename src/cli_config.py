"""Runtime configuration: config file, environment and CLI overrides.

Precedence, lowest to highest: built-in defaults, YAML config file,
environment variables, CLI flags.
"""

from __future__ import annotations

import logging
import os
import re
from typing import List

from constants import Constants, _load_yaml_config

logger = logging.getLogger(__name__)

_FEED_SPLIT_RE = re.compile(r"[;,\s]+")


def split_feeds(value: str) -> List[str]:
    """Split a comma/semicolon/whitespace separated feed list."""
    return [f for f in _FEED_SPLIT_RE.split(value or "") if f]


def apply_config(args) -> None:
    """Load the config file then apply environment overrides to Constants."""
    _load_yaml_config(getattr(args, "CONFIG", None))

    env_feeds = os.environ.get(Constants.ENV_FEEDS)
    if env_feeds and env_feeds.strip():
        Constants.DEFAULT_FEEDS = split_feeds(env_feeds)
        logger.debug("Feeds taken from %s", Constants.ENV_FEEDS)

    env_root = os.environ.get(Constants.ENV_CACHE_ROOT)
    if env_root and env_root.strip():
        Constants.CACHE_ROOT = os.path.expanduser(env_root.strip())


def effective_feeds(args) -> List[str]:
    """CLI feeds win over configured defaults."""
    cli_feeds = [f.strip() for f in (getattr(args, "FEEDS", None) or []) if f and f.strip()]
    return cli_feeds or list(Constants.DEFAULT_FEEDS)


def effective_cache_root(args) -> str:
    cli_root = getattr(args, "CACHE_ROOT", None)
    if cli_root:
        return os.path.expanduser(cli_root)
    return Constants.CACHE_ROOT
