"""
EU VIES VAT number validation.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from kybrisk import settings

logger = logging.getLogger("kybrisk.checks.vies")


@dataclass
class ViesResult:
    """Outcome of a VIES check. Invalid/unknown is the safe result."""
    is_valid: bool = False
    address: Optional[str] = None


class ViesChecker:
    """Client for the VIES REST API.

    Fails open: when VIES is down or the number is unknown the result is
    simply invalid, and profile generation goes on.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.url = (url or settings.VIES_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self.client = client

    def vat_url(self, country_code: str, registration_number: str) -> str:
        country = country_code.upper()
        number = re.sub(r"[^0-9A-Za-z]", "", registration_number)
        return f"{self.url}/ms/{country}/vat/{number}"

    async def _get(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        return await client.get(url, headers={"Accept": "application/json"})

    async def check(self, registration_number: str, country_code: Optional[str] = None) -> ViesResult:
        """Validate a VAT number.

        Args:
            registration_number: Registration / VAT number without country prefix
            country_code: Two-letter member state code. Defaults to settings.DEFAULT_COUNTRY_CODE.

        Returns:
            ViesResult
        """
        url = self.vat_url(country_code or settings.DEFAULT_COUNTRY_CODE, registration_number)
        logger.info(f"Checking VIES: {url}")
        try:
            if self.client is not None:
                response = await self._get(self.client, url)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._get(client, url)

            if response.status_code == 404:
                logger.warning(f"VAT number {registration_number} not found in VIES")
                return ViesResult()

            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")

            is_valid = data.get("isValid") is True
            address = data.get("traderAddress") or data.get("address") or None
        except httpx.HTTPError as e:
            logger.error(f"VIES check failed: {str(e)}")
            return ViesResult()
        except ValueError as e:
            logger.error(f"VIES returned an unreadable response: {str(e)}")
            return ViesResult()

        if is_valid:
            logger.info(f"VAT number {registration_number} is valid in VIES")
        else:
            logger.info(f"VAT number {registration_number} is not valid in VIES")
        return ViesResult(is_valid=is_valid, address=address)
