"""Shared HTTP helpers used by the feed client.

Encapsulates common request/timeout/retry handling so feed code avoids
duplicating try/except blocks. Failures never exit the process: callers get
a status code of 0 (plus a reason) and decide whether to try the next feed.
"""
from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], str]:
    """Perform GET request with timeout and retries with DEBUG traces.

    Server errors (5xx), timeouts and connection errors are retried up to
    ``Constants.HTTP_RETRY_MAX`` times with a linear backoff.

    Returns:
        Tuple of (status_code, headers_dict, text). ``status_code`` is 0 when
        every attempt failed; ``text`` then carries the last failure reason.
    """
    safe_target = safe_url(url)
    last_exception = None

    for attempt in range(Constants.HTTP_RETRY_MAX):
        if attempt:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * attempt)
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1
                        )
                    )

                response = requests.get(
                    url,
                    timeout=Constants.REQUEST_TIMEOUT,
                    headers=headers,
                    **kwargs
                )
            except requests.Timeout:
                last_exception = f"timed out after {Constants.REQUEST_TIMEOUT} seconds"
                logger.debug(
                    "HTTP timeout",
                    extra=extra_context(
                        event="http_exception",
                        component="http_client",
                        action="GET",
                        outcome="timeout",
                        attempt=attempt + 1,
                        target=safe_target
                    )
                )
                continue
            except requests.RequestException as exc:  # includes ConnectionError
                last_exception = str(exc)
                logger.debug(
                    "HTTP request exception",
                    extra=extra_context(
                        event="http_exception",
                        component="http_client",
                        action="GET",
                        outcome="request_exception",
                        attempt=attempt + 1,
                        target=safe_target
                    )
                )
                continue

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    status_code=response.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target
                )
            )
        if response.status_code >= 500:
            last_exception = f"HTTP {response.status_code}"
            continue
        return response.status_code, dict(response.headers), response.text

    # All retries failed
    return 0, {}, f"Request failed after {Constants.HTTP_RETRY_MAX} attempts: {last_exception}"


def get_json(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], Optional[Any]]:
    """Perform GET request and parse JSON response.

    Args:
        url: Target URL
        headers: Optional request headers
        **kwargs: Additional requests.get parameters

    Returns:
        Tuple of (status_code, headers_dict, parsed_json_or_none)
    """
    status_code, response_headers, text = robust_get(url, headers=headers, **kwargs)

    if status_code == 200 and text:
        try:
            return status_code, response_headers, json.loads(text)
        except json.JSONDecodeError:
            logger.debug(
                "JSON decode error",
                extra=extra_context(
                    event="parse",
                    component="http_client",
                    action="get_json",
                    outcome="json_decode_error",
                    status_code=status_code,
                    target=safe_url(url)
                )
            )
            return status_code, response_headers, None

    return status_code, response_headers, None


def download_file(
    url: str,
    dest_path: str,
    *,
    headers: Optional[Dict[str, str]] = None,
) -> Tuple[int, str]:
    """Stream a GET response body to ``dest_path``.

    Returns:
        Tuple of (status_code, reason). ``status_code`` is 200 on success; 0
        on timeout or connection failure. A partial file is removed.
    """
    safe_target = safe_url(url)
    with Timer() as t:
        try:
            with requests.get(
                url,
                timeout=Constants.REQUEST_TIMEOUT,
                headers=headers,
                stream=True,
            ) as response:
                if response.status_code != 200:
                    return response.status_code, f"HTTP {response.status_code}"
                with open(dest_path, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=Constants.DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
        except requests.Timeout:
            _remove_partial(dest_path)
            return 0, f"timed out after {Constants.REQUEST_TIMEOUT} seconds"
        except requests.RequestException as exc:
            _remove_partial(dest_path)
            return 0, str(exc)

    logger.debug(
        "Downloaded file",
        extra=extra_context(
            event="download",
            component="http_client",
            action="GET",
            outcome="success",
            duration_ms=t.duration_ms(),
            target=safe_target,
        )
    )
    return 200, ""


def _remove_partial(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
