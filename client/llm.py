"""
LLM market analyst over an OpenAI-compatible chat completions API
(OpenRouter or OpenAI). Plugs into ExternalScorer as its score function.
"""

from __future__ import annotations

import json
import logging
import re

import httpx

from scanner.models import Market, Recommendation, ScoreResult, reference_outcome

logger = logging.getLogger(__name__)

_ENDPOINTS = {
    "openrouter": "https://openrouter.ai/api/v1/chat/completions",
    "openai": "https://api.openai.com/v1/chat/completions",
}
_OPENAI_DEFAULT_MODEL = "gpt-4o-mini"

_SYSTEM_PROMPT = "You are a prediction market analyst. Respond only with valid JSON, no markdown or explanations."

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class LLMResponseError(Exception):
    """The model answered with something we cannot turn into a score."""
    pass


def build_prompt(market: Market) -> str:
    outcome = reference_outcome(market)
    yes_price = outcome.price if outcome else 0.5
    no_price = 1.0 - yes_price
    return f"""You are an expert prediction market analyst. Analyze this market and provide a trading recommendation.

MARKET QUESTION: "{market.question}"

CURRENT PRICES:
- YES: {yes_price * 100:.1f}% (buy YES if you think probability is HIGHER)
- NO: {no_price * 100:.1f}% (buy NO if you think probability is LOWER)

MARKET DATA:
- Liquidity: ${market.liquidity:,.0f}
- Volume: ${market.volume:,.0f}
- End Date: {market.end_date or "Unknown"}

ANALYSIS TASK:
1. Consider current events, trends, and any relevant information
2. Estimate the TRUE probability of YES outcome
3. Compare with market price to find mispricing
4. If price seems too LOW, recommend YES
5. If price seems too HIGH, recommend NO
6. If price is fair (within 10%), recommend SKIP

Respond ONLY with this exact JSON format:
{{
  "reasoning": "2-3 sentence explanation of your analysis",
  "predictedProbability": 0.XX,
  "confidence": 0.XX,
  "recommendation": "YES" or "NO" or "SKIP",
  "keyFactors": ["factor1", "factor2", "factor3"]
}}"""


def _clamp_unit(raw, default: float = 0.5) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return max(0.0, min(1.0, value))


def parse_response(content: str) -> ScoreResult:
    """
    Parse model output into a ScoreResult. Tolerates markdown fences and
    surrounding prose. Raises LLMResponseError when no JSON object is found.
    """
    match = _JSON_OBJECT.search(content.strip())
    if not match:
        raise LLMResponseError(f"No JSON object in response: {content[:80]!r}")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Invalid JSON in response: {e}") from e
    if not isinstance(parsed, dict):
        raise LLMResponseError("Response JSON is not an object")

    try:
        recommendation = Recommendation(str(parsed.get("recommendation", "SKIP")).upper())
    except ValueError:
        recommendation = Recommendation.SKIP

    factors = parsed.get("keyFactors")
    return ScoreResult(
        predicted_probability=_clamp_unit(parsed.get("predictedProbability")),
        confidence=_clamp_unit(parsed.get("confidence")),
        recommendation=recommendation,
        reasoning=str(parsed.get("reasoning") or "No reasoning provided"),
        key_factors=tuple(str(f) for f in factors) if isinstance(factors, list) else (),
    )


class LLMScorer:
    """Market-level score function. Returns None when no API key is set."""

    def __init__(
        self,
        api_key: str = "",
        provider: str = "openrouter",
        model: str = "google/gemini-2.0-flash-exp:free",
        timeout_sec: float = 30.0,
    ) -> None:
        if provider not in _ENDPOINTS:
            raise ValueError(f"Unknown LLM provider: {provider}")
        self.api_key = api_key
        self.provider = provider
        self.model = model
        self.timeout_sec = timeout_sec

    @property
    def endpoint(self) -> str:
        return _ENDPOINTS[self.provider]

    def __call__(self, market: Market) -> ScoreResult | None:
        return self.score_market(market)

    def score_market(self, market: Market) -> ScoreResult | None:
        if not self.api_key:
            return None
        content = self._complete(build_prompt(market))
        result = parse_response(content)
        logger.debug(
            "LLM %s: %s p=%.2f conf=%.2f",
            market.id, result.recommendation.value, result.predicted_probability, result.confidence,
        )
        return result

    def _complete(self, prompt: str) -> str:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        if self.provider == "openrouter":
            headers["X-Title"] = "Polymarket Value Agent"
        body = {
            "model": self.model if self.provider == "openrouter" else _OPENAI_DEFAULT_MODEL,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.3,
            "max_tokens": 500,
        }
        resp = httpx.post(self.endpoint, headers=headers, json=body, timeout=self.timeout_sec)
        resp.raise_for_status()
        data = resp.json()
        choices = data.get("choices") or []
        if not choices:
            raise LLMResponseError("Response has no choices")
        return (choices[0].get("message") or {}).get("content") or ""
