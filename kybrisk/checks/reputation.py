"""
Adverse media analysis.

Searches the web for a company name next to financial-crime terms and asks
an LLM to assess the top results. The resulting 0-100 media risk score is an
optional input to the overall risk score.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from anthropic import AsyncAnthropic

from kybrisk import settings

logger = logging.getLogger("kybrisk.checks.reputation")

MAX_RESULTS = 5
NO_ADVERSE_MEDIA = "No adverse media found"
# Scores used when the analysis cannot be trusted
FALLBACK_CLEAN_SCORE = 5
FALLBACK_UNPARSED_SCORE = 30
FAILED_SCORE = 50

PROMPT_TEMPLATE = """Analyze these search snippets for the company '{company_name}'.

You must respond with ONLY a JSON object in this exact format:
{{
  "summary": "Your analysis summary in 1-3 sentences",
  "risk_score": 0-100,
  "negative_mentions": number_of_actual_negative_findings,
  "adverse_findings": true_or_false
}}

Guidelines:
- risk_score: 0-20 (low risk), 21-50 (medium), 51-80 (high), 81-100 (critical)
- negative_mentions: Count only results with actual adverse content about {company_name}
- adverse_findings: true if any real financial crime concerns found, false otherwise
- If results look normal/irrelevant, set adverse_findings to false and risk_score to 0-20

Search Results:
{snippets}"""


@dataclass
class ReputationResult:
    """Adverse media assessment of a company."""
    risk_score: float
    negative_mentions: int
    summary: str
    sources: List[str] = field(default_factory=list)
    adverse_findings: bool = False
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _clamp_score(value: Any) -> float:
    return max(0.0, min(100.0, float(value)))


class ReputationAnalyzer:
    """Adverse media analysis with Brave web search and an Anthropic model."""

    def __init__(
        self,
        search_api_key: Optional[str] = None,
        search_url: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        model: Optional[str] = None,
        llm_client: Optional[Any] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        """Initialize the analyzer.

        Args:
            search_api_key: Brave Search API key. Defaults to settings.BRAVE_API_KEY.
            search_url: Brave web search endpoint. Defaults to settings.BRAVE_SEARCH_URL.
            anthropic_api_key: Defaults to settings.ANTHROPIC_API_KEY.
            model: Model name. Defaults to settings.AI_MODEL.
            llm_client: Client exposing ``messages.create``; built from the API key if omitted
            timeout: Search request timeout in seconds. Defaults to settings.HTTP_TIMEOUT.
            client: Optional HTTP client for the search requests
        """
        self.search_api_key = search_api_key if search_api_key is not None else settings.BRAVE_API_KEY
        self.search_url = search_url or settings.BRAVE_SEARCH_URL
        self.anthropic_api_key = anthropic_api_key if anthropic_api_key is not None else settings.ANTHROPIC_API_KEY
        self.model = model or settings.AI_MODEL
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self.client = client
        self._llm_client = llm_client

    @property
    def is_configured(self) -> bool:
        return bool(self.search_api_key) and (self._llm_client is not None or bool(self.anthropic_api_key))

    @property
    def llm_client(self) -> Any:
        if self._llm_client is None:
            self._llm_client = AsyncAnthropic(api_key=self.anthropic_api_key)
        return self._llm_client

    async def _search(self, company_name: str) -> List[Dict[str, Any]]:
        query = f'"{company_name}" ("fraud" OR "money laundering" OR "sanction")'
        params = {"q": query, "count": MAX_RESULTS, "freshness": "py"}
        headers = {"X-Subscription-Token": self.search_api_key, "Accept": "application/json"}

        if self.client is not None:
            response = await self.client.get(self.search_url, params=params, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.search_url, params=params, headers=headers)
        response.raise_for_status()
        return response.json().get("web", {}).get("results", [])[:MAX_RESULTS]

    async def _ask_model(self, company_name: str, results: List[Dict[str, Any]]) -> str:
        snippets = "\n\n".join(
            f"{i}. Title: {result.get('title', '')}\n   Snippet: {result.get('description', '')}"
            for i, result in enumerate(results, start=1)
        )
        message = await self.llm_client.messages.create(
            model=self.model,
            max_tokens=1000,
            messages=[{
                "role": "user",
                "content": PROMPT_TEMPLATE.format(company_name=company_name, snippets=snippets)
            }]
        )
        block = message.content[0]
        return block.text if getattr(block, "type", "text") == "text" else ""

    def _parse(self, response_text: str, urls: List[str]) -> ReputationResult:
        match = re.search(r"\{.*\}", response_text, re.DOTALL)
        try:
            if match is None:
                raise ValueError("no JSON object in response")
            analysis = json.loads(match.group(0))
            return ReputationResult(
                risk_score=_clamp_score(analysis["risk_score"]),
                negative_mentions=int(analysis.get("negative_mentions", 0)),
                summary=str(analysis.get("summary", "")),
                sources=urls,
                adverse_findings=bool(analysis.get("adverse_findings", False)),
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to parse model response as JSON: {e}")
            logger.debug(f"Raw response: {response_text}")

        clean = NO_ADVERSE_MEDIA in response_text
        return ReputationResult(
            risk_score=FALLBACK_CLEAN_SCORE if clean else FALLBACK_UNPARSED_SCORE,
            negative_mentions=0 if clean else len(urls),
            summary=NO_ADVERSE_MEDIA if clean else "Analysis completed - manual review recommended",
            sources=urls,
            adverse_findings=not clean,
        )

    async def analyze(self, company_name: str) -> Optional[ReputationResult]:
        """Assess adverse media about a company.

        Never raises. Returns None when the analyzer is not configured, so the
        caller can leave media out of the score altogether.

        Args:
            company_name: Company name to search for

        Returns:
            ReputationResult, or None when search or model keys are missing
        """
        if not self.is_configured:
            logger.warning("No BRAVE_API_KEY / ANTHROPIC_API_KEY configured, skipping adverse media check")
            return None

        logger.info(f"Analyzing adverse media for {company_name}")
        try:
            results = await self._search(company_name)
            if not results:
                return ReputationResult(risk_score=0, negative_mentions=0, summary=NO_ADVERSE_MEDIA)

            urls = [result.get("url", "") for result in results]
            response_text = await self._ask_model(company_name, results)
            return self._parse(response_text, urls)
        except Exception as e:
            logger.exception(f"Adverse media analysis failed for {company_name}: {e}")
            return ReputationResult(
                risk_score=FAILED_SCORE,
                negative_mentions=0,
                summary="Analysis failed - manual review recommended",
            )
