"""
Structural profile sources.

ProfileSource is the boundary the backfill consumes. OpenAIProfileSource
asks a chat model for a wine's structure as JSON, with retry logic,
response caching and pydantic validation. Any final failure yields None,
so callers fall back to the heuristic estimate.
"""

import json
import os
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from openai import APIError, OpenAI, RateLimitError
from pydantic import BaseModel, Field
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from cellarwise.config import OPENAI_MODEL, OPENAI_SEED, OPENAI_TEMPERATURE
from cellarwise.constants import Confidence, ProfileOrigin
from cellarwise.error_handling import ProfileSourceError, handle_profile_error
from cellarwise.schema import StructuralProfile, WineRecord
from cellarwise.utils import ProfileCache, logger


class ProfileSource(ABC):
    """Looks up a structural profile for a wine id."""

    @abstractmethod
    def get_profile(self, wine_id: str) -> Optional[StructuralProfile]:
        """Profile for the wine, or None when none can be derived."""


class ProfileResponse(BaseModel):
    """LLM output for a wine's structure with validated 0-5 axes."""

    body: int = Field(..., ge=0, le=5, description="Body (0=watery, 5=very full)")
    tannin: int = Field(..., ge=0, le=5, description="Tannin (whites typically 0-1)")
    acidity: int = Field(..., ge=0, le=5, description="Acidity (0=flat, 5=searing)")
    oak: int = Field(..., ge=0, le=5, description="Oak influence (0=none, 5=heavy)")
    sweetness: int = Field(0, ge=0, le=5, description="Sweetness (0=bone dry, 5=dessert)")
    confidence: Confidence = Field(Confidence.MED, description="How sure the model is")
    style_tags: List[str] = Field(default_factory=list, description="Up to 5 kebab-case style tags")


SYSTEM_PROMPT = (
    "You are a master sommelier with encyclopedic knowledge of grapes, producers and regions. "
    "Return JSON only."
)


def build_profile_prompt(wine: WineRecord) -> str:
    """Prompt asking for the wine's structure on 0-5 scales."""
    details = [
        f"Wine: {wine.wine_name or 'unknown'}",
        f"Producer: {wine.producer or 'unknown'}",
        f"Vintage: {wine.vintage_year or 'NV'}",
        f"Color: {wine.color.value}",
        f"Grapes: {', '.join(wine.grapes) if wine.grapes else 'unknown'}",
        f"Region: {wine.region or 'unknown'}",
    ]
    if wine.appellation:
        details.append(f"Appellation: {wine.appellation}")

    return "\n".join(details) + """

Rate this wine's structure using integers from 0 to 5:
1. **body**: 0 watery, 5 very full
2. **tannin**: 0 none, 5 very grippy (whites and sparkling 0-1)
3. **acidity**: 0 flat, 5 searing
4. **oak**: 0 unoaked, 5 heavily oaked
5. **sweetness**: 0 bone dry, 5 lusciously sweet

Also return **confidence** ("low", "med" or "high") and **style_tags**
(up to 5 short kebab-case descriptors such as "earthy" or "high-acid").

Use varietal and regional knowledge for the specific producer and vintage.
Return JSON only with these exact field names.
"""


class OpenAIProfileSource(ProfileSource):
    """
    Profile source backed by the OpenAI chat API.

    Features:
    - Retry with exponential backoff on rate limits and API errors
    - Optional on-disk response caching
    - Schema validation of every response
    """

    def __init__(
        self,
        wine_lookup: Callable[[str], Optional[WineRecord]],
        client: Optional[OpenAI] = None,
        cache: Optional[ProfileCache] = None,
        model: str = OPENAI_MODEL,
    ):
        """
        Args:
            wine_lookup: Returns the WineRecord for a wine id (None if unknown)
            client: OpenAI client. Created from OPENAI_API_KEY when omitted.
            cache: Response cache; no caching when omitted
            model: Chat model name
        """
        if client is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY not found in environment variables")
            client = OpenAI(api_key=api_key)

        self.client = client
        self.cache = cache
        self.model = model
        self.wine_lookup = wine_lookup

    @classmethod
    def from_store(cls, wine_store, **kwargs) -> "OpenAIProfileSource":
        """Source that looks wines up by wine id in a WineStore."""
        return cls(wine_store.get_wine, **kwargs)

    def get_profile(self, wine_id: str) -> Optional[StructuralProfile]:
        wine = self.wine_lookup(wine_id)
        if wine is None:
            logger.warning(f"No wine record for {wine_id}, cannot request profile")
            return None

        prompt = build_profile_prompt(wine)
        cached = self.cache.get(prompt, self.model) if self.cache else None

        try:
            data = cached if cached is not None else self._call_openai_with_retry([
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ])
            response = ProfileResponse(**data)
        except Exception as e:
            try:
                return handle_profile_error(e, f"profile lookup for {wine_id}", fallback_value=None)
            except ProfileSourceError as source_error:
                logger.warning(f"Profile source unavailable for {wine_id}: {source_error}")
                return None

        if cached is None and self.cache:
            self.cache.put(prompt, self.model, data, wine_id=wine_id)

        logger.info(f"AI profile for {wine_id}: body={response.body} tannin={response.tannin}")
        return StructuralProfile(**response.model_dump(), source=ProfileOrigin.AI)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((RateLimitError, APIError)),
        reraise=True
    )
    def _call_openai_with_retry(self, messages: list) -> dict:
        """
        Call OpenAI API with automatic retry on transient errors.

        Returns:
            Parsed JSON response
        """
        logger.debug("Calling OpenAI API...")
        completion = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            response_format={"type": "json_object"},
            temperature=OPENAI_TEMPERATURE,
            seed=OPENAI_SEED,
        )
        return json.loads(completion.choices[0].message.content)


__all__ = [
    'ProfileSource',
    'ProfileResponse',
    'OpenAIProfileSource',
    'build_profile_prompt',
]
