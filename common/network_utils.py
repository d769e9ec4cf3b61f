# common/network_utils.py
# -*- coding: utf-8 -*-
"""
Network-related utility functions.
"""
import logging
from typing import Optional

import requests

from common.orchestrator import RunContext

module_logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120


def fetch_text(
    url: str,
    ctx: Optional[RunContext] = None,
    timeout: float = DEFAULT_TIMEOUT,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """
    Download a small text resource, such as an installer script.

    Args:
        url: The URL to fetch.
        ctx: Run context. Checked before the request and its deadline caps
             the request timeout.
        timeout: Request timeout in seconds.
        current_logger: Optional logger instance.

    Returns:
        The response body.

    Raises:
        OperationCancelled: ``ctx`` was cancelled.
        requests.exceptions.RequestException: The download failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if ctx is not None:
        ctx.check()
        remaining = ctx.remaining()
        if remaining is not None:
            timeout = min(timeout, remaining)

    logger_to_use.info(f"Downloading {url}")
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.HTTPError as http_err:
        logger_to_use.error(
            f"HTTP error occurred: {http_err} - Status code: {http_err.response.status_code if http_err.response is not None else 'Unknown'}"
        )
        raise
    except requests.exceptions.RequestException as req_err:
        logger_to_use.error(f"Download of {url} failed: {req_err}")
        raise
    return response.text
