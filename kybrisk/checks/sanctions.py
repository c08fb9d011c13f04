"""
Sanctions screening against the OpenSanctions match API.

The match endpoint is queried with the ``LegalEntity`` schema so that only
companies and organizations are matched, not people.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log
)

from kybrisk import settings

logger = logging.getLogger("kybrisk.checks.sanctions")

PEP_TOPIC = "role.pep"
UNSPECIFIED_SOURCE = "Unspecified Sanction List"


def _score(match: Dict[str, Any]) -> float:
    return float(match.get("score") or 0)


def _topics(match: Dict[str, Any]) -> List[str]:
    # Fields may be present but null
    return list((match.get("properties") or {}).get("topics") or [])


@dataclass
class SanctionsResult:
    """Outcome of a sanctions check. The defaults are the safe result."""
    is_sanctioned: bool = False
    sources: List[str] = field(default_factory=list)
    details: Optional[str] = None
    is_pep: bool = False


class SanctionsChecker:
    """Client for the OpenSanctions match API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        url: Optional[str] = None,
        threshold: Optional[float] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        """Initialize the checker.

        Args:
            api_key: OpenSanctions API key. Defaults to settings.OPENSANCTIONS_API_KEY.
            url: Match endpoint. Defaults to settings.OPENSANCTIONS_URL.
            threshold: Minimum match score counted as a hit.
                Defaults to settings.SANCTIONS_MATCH_THRESHOLD.
            timeout: Request timeout in seconds. Defaults to settings.HTTP_TIMEOUT.
            client: Optional HTTP client to use instead of a fresh one
        """
        self.api_key = api_key if api_key is not None else settings.OPENSANCTIONS_API_KEY
        self.url = url or settings.OPENSANCTIONS_URL
        self.threshold = threshold if threshold is not None else settings.SANCTIONS_MATCH_THRESHOLD
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self.client = client

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    async def _post(self, client: httpx.AsyncClient, body: Dict[str, Any]) -> Dict[str, Any]:
        response = await client.post(
            self.url,
            json=body,
            headers={"Authorization": f"ApiKey {self.api_key}"}
        )
        response.raise_for_status()
        return response.json()

    async def _match(self, company_name: str) -> List[Dict[str, Any]]:
        body = {
            "queries": {
                "query1": {
                    "schema": "LegalEntity",
                    "properties": {"name": [company_name]}
                }
            }
        }
        if self.client is not None:
            data = await self._post(self.client, body)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                data = await self._post(client, body)
        return data["responses"]["query1"]["results"]

    async def check(self, company_name: str) -> SanctionsResult:
        """Check a company name against sanctions and PEP lists.

        Never raises: a missing API key or a failed request yields a clean
        result, the latter with details explaining the failure.

        Args:
            company_name: Company name to screen

        Returns:
            SanctionsResult
        """
        if not self.api_key:
            logger.warning("No OPENSANCTIONS_API_KEY configured, skipping sanctions check")
            return SanctionsResult()

        logger.info(f"Checking OpenSanctions for: \"{company_name}\"")
        try:
            matches = await self._match(company_name)
            return self._evaluate(company_name, matches)
        except httpx.HTTPError as e:
            logger.error(f"OpenSanctions API request failed: {str(e)}")
            return SanctionsResult(details="API request failed")
        except Exception as e:
            logger.exception(f"Unexpected OpenSanctions response for {company_name}: {e}")
            return SanctionsResult(details="API request failed")

    def _evaluate(self, company_name: str, matches: List[Dict[str, Any]]) -> SanctionsResult:
        if not matches:
            logger.info(f"No sanctions found, {company_name} is clean")
            return SanctionsResult()

        for match in matches:
            logger.debug(
                f"Match: {match.get('caption')} "
                f"({_score(match) * 100:.1f}% - {match.get('schema')})"
            )

        strong = [match for match in matches if _score(match) >= self.threshold]
        if not strong:
            logger.info(f"{len(matches)} matches below {self.threshold:.0%} threshold, {company_name} is likely clean")
            return SanctionsResult()

        best = max(strong, key=_score)
        sources = _topics(best) or [UNSPECIFIED_SOURCE]
        is_pep = any(PEP_TOPIC in _topics(match) for match in strong)
        logger.warning(
            f"High confidence sanctions match for {company_name}: "
            f"{best.get('caption')} ({_score(best) * 100:.1f}%)"
        )

        details = json.dumps([
            {
                "id": match.get("id"),
                "caption": match.get("caption"),
                "schema": match.get("schema"),
                "score": _score(match),
                "topics": _topics(match),
            }
            for match in strong
        ])
        return SanctionsResult(is_sanctioned=True, sources=sources, details=details, is_pep=is_pep)
