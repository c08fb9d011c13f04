"""
Utility functions for reference data loading.

This module configures logging for the service and provides the retrying
HTTP download and content decoding helpers used by the data sources.
"""

import logging
from typing import Dict, Optional

import httpx
from rich.logging import RichHandler
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log
)

from kybrisk import settings
from kybrisk.refdata.errors import SourceUnreadableError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True)]
)
logger = logging.getLogger("kybrisk.refdata")


@retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=4, max=10),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True
)
async def _fetch(
    client: httpx.AsyncClient,
    url: str,
    headers: Optional[Dict[str, str]] = None
) -> bytes:
    response = await client.get(url, headers=headers)
    response.raise_for_status()
    return response.content


async def download_file(
    url: str,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    client: Optional[httpx.AsyncClient] = None
) -> bytes:
    """Download a file from a URL.

    Transport errors (connection failures, timeouts) are retried with
    exponential backoff. HTTP error statuses are not retried.

    Args:
        url: URL to download
        headers: Request headers
        timeout: Request timeout in seconds. Defaults to settings.HTTP_TIMEOUT.
        client: Optional HTTP client to use instead of a fresh one

    Returns:
        File content as bytes

    Raises:
        SourceUnreadableError: If the download fails
    """
    logger.info(f"Downloading: {url}")
    try:
        if client is not None:
            return await _fetch(client, url, headers)
        async with httpx.AsyncClient(timeout=timeout or settings.HTTP_TIMEOUT) as owned_client:
            return await _fetch(owned_client, url, headers)
    except httpx.HTTPError as e:
        logger.error(f"Download error: {str(e)}")
        raise SourceUnreadableError(f"Failed to download {url}: {str(e)}") from e


def decode_content(content: bytes, name: str, encoding: Optional[str] = None) -> str:
    """Decode downloaded or read bytes into text.

    Args:
        content: Raw bytes
        name: Source name, used in error messages
        encoding: Text encoding. Defaults to settings.REFDATA_ENCODING.

    Returns:
        Decoded text

    Raises:
        SourceUnreadableError: If the bytes cannot be decoded
    """
    encoding = encoding or settings.REFDATA_ENCODING
    try:
        return content.decode(encoding)
    except (UnicodeDecodeError, LookupError) as e:
        raise SourceUnreadableError(f"Failed to decode {name} as {encoding}: {str(e)}") from e
