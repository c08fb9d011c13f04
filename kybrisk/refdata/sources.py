"""
Reference data sources.

A data source returns the text of a named reference file. The service can
read its snapshot either from a local directory or from a remote object
storage bucket; both behave the same for the loader.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import httpx

from kybrisk import settings
from kybrisk.refdata.errors import SourceUnreadableError
from kybrisk.refdata.utils import decode_content, download_file

logger = logging.getLogger("kybrisk.refdata.sources")


class DataSource(ABC):
    """Abstract base class for reference data sources."""

    @abstractmethod
    async def read(self, filename: str) -> str:
        """Read a reference file as text.

        Args:
            filename: File name, e.g. "registry.csv"

        Returns:
            Decoded file content

        Raises:
            SourceUnreadableError: If the file cannot be read or decoded
        """
        pass


class LocalDirectorySource(DataSource):
    """Reads reference files from a local directory."""

    def __init__(self, directory: Optional[Path] = None, encoding: Optional[str] = None):
        self.directory = Path(directory or settings.REFDATA_DIR)
        self.encoding = encoding

    async def read(self, filename: str) -> str:
        path = self.directory / filename
        logger.info(f"Reading {path}")
        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise SourceUnreadableError(f"Failed to read {path}: {str(e)}") from e
        return decode_content(content, filename, self.encoding)

    def __repr__(self) -> str:
        return f"<LocalDirectorySource(directory='{self.directory}')>"


class BucketSource(DataSource):
    """Downloads reference files from an object storage bucket over HTTP."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        bucket: Optional[str] = None,
        api_key: Optional[str] = None,
        encoding: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = (base_url or settings.REFDATA_BUCKET_URL).rstrip("/")
        self.bucket = bucket or settings.REFDATA_BUCKET_NAME
        self.api_key = api_key if api_key is not None else settings.REFDATA_BUCKET_KEY
        self.encoding = encoding
        self.client = client

        if not self.base_url:
            raise ValueError("Bucket source requires a base URL (REFDATA_BUCKET_URL)")

    def object_url(self, filename: str) -> str:
        return f"{self.base_url}/storage/v1/object/{self.bucket}/{filename}"

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            return {}
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
        }

    async def read(self, filename: str) -> str:
        content = await download_file(
            self.object_url(filename),
            headers=self._headers(),
            client=self.client
        )
        logger.info(f"Downloaded {filename} from bucket {self.bucket} ({len(content)} bytes)")
        return decode_content(content, filename, self.encoding)

    def __repr__(self) -> str:
        return f"<BucketSource(base_url='{self.base_url}', bucket='{self.bucket}')>"


def get_data_source() -> DataSource:
    """Get the data source configured by settings.REFDATA_SOURCE.

    Returns:
        LocalDirectorySource for "local", BucketSource for "bucket"
    """
    if settings.REFDATA_SOURCE == "bucket":
        return BucketSource()
    if settings.REFDATA_SOURCE != "local":
        logger.warning(f"Unknown REFDATA_SOURCE '{settings.REFDATA_SOURCE}', using local directory")
    return LocalDirectorySource()
