"""
Food classifier - tags feeding notes with nutrition groups.

Design decisions:
- The LLM only returns group tags; coverage rules live in the G3 validator
- Temperature 0 for reproducibility
- Every note is classified independently; one failure never sinks the batch
- Nothing here is global: the client and rate limiter are passed in
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor

import anthropic

from sleep_diagnostic.food_classifier.prompts import CLASSIFICATION_PROMPT, SYSTEM_PROMPT
from sleep_diagnostic.models import NutritionClassification, NutritionGroup
from sleep_diagnostic.rate_limiter import RateLimiter
from sleep_diagnostic.settings import Settings

logger = logging.getLogger(__name__)

# Map model output (English or Spanish, singular or plural) to groups
GROUP_NAME_MAP = {
    "protein": NutritionGroup.PROTEIN,
    "proteins": NutritionGroup.PROTEIN,
    "proteina": NutritionGroup.PROTEIN,
    "proteína": NutritionGroup.PROTEIN,
    "proteinas": NutritionGroup.PROTEIN,
    "proteínas": NutritionGroup.PROTEIN,
    "carbohydrate": NutritionGroup.CARBOHYDRATE,
    "carbohydrates": NutritionGroup.CARBOHYDRATE,
    "carbohidrato": NutritionGroup.CARBOHYDRATE,
    "carbohidratos": NutritionGroup.CARBOHYDRATE,
    "fat": NutritionGroup.FAT,
    "fats": NutritionGroup.FAT,
    "grasa": NutritionGroup.FAT,
    "grasas": NutritionGroup.FAT,
    "fiber": NutritionGroup.FIBER,
    "fibre": NutritionGroup.FIBER,
    "fibra": NutritionGroup.FIBER,
}


def unclassified(text: str | None) -> NutritionClassification:
    return NutritionClassification(groups=[], ai_classified=False, raw_text=text)


def _parse_classifier_response(response_text: str) -> dict:
    """Extract JSON from the LLM response, handling markdown code blocks."""
    text = response_text.strip()

    if text.startswith("```"):
        first_newline = text.index("\n")
        last_fence = text.rfind("```")
        if last_fence > first_newline:
            text = text[first_newline + 1:last_fence].strip()

    # Tolerate a sentence before or after the object
    if not text.startswith("{"):
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError(f"No JSON object in classifier response: {response_text[:80]!r}")
        text = text[start:end + 1]

    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Classifier response is not a JSON object")
    return data


def _build_classification(data: dict, text: str) -> NutritionClassification:
    """Convert raw JSON into a typed classification. Unknown groups are dropped."""
    groups = []
    for name in data.get("groups") or []:
        group = GROUP_NAME_MAP.get(str(name).strip().lower())
        if group is not None and group not in groups:
            groups.append(group)

    confidence = data.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = 0.0
    confidence = max(0.0, min(1.0, float(confidence)))

    return NutritionClassification(
        groups=groups,
        ai_classified=True,
        confidence=confidence,
        raw_text=text,
    )


class FoodClassifier(ABC):
    """Classifies free-text feeding notes. Subclasses implement `classify`."""

    max_workers: int = 4

    @abstractmethod
    def classify(self, text: str) -> NutritionClassification:
        ...

    def classify_batch(self, texts: list[str]) -> list[NutritionClassification]:
        """
        Classify many notes concurrently.

        Returns exactly one result per input, in input order. Any failure for
        a single note yields an unclassified result for that note only.
        """
        if not texts:
            return []

        with ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(texts)))) as pool:
            futures = [pool.submit(self.classify, text) for text in texts]

        results = []
        for text, future in zip(texts, futures):
            try:
                results.append(future.result())
            except Exception as e:
                logger.warning(f"Food classification failed for {text[:40]!r}: {e}")
                results.append(unclassified(text))
        return results


class AnthropicFoodClassifier(FoodClassifier):
    """Claude-backed classifier."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: anthropic.Anthropic | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        self.settings = settings or Settings()
        self.max_workers = self.settings.classifier_max_workers
        self.client = client or anthropic.Anthropic(  # uses ANTHROPIC_API_KEY env var
            timeout=self.settings.classifier_timeout,
            max_retries=self.settings.classifier_max_retries,
        )
        self.rate_limiter = rate_limiter or RateLimiter(self.settings.requests_per_minute)

    def classify(self, text: str) -> NutritionClassification:
        if not text or not text.strip():
            return unclassified(text)

        self.rate_limiter.wait()
        try:
            response = self.client.messages.create(
                model=self.settings.classifier_model,
                max_tokens=200,
                temperature=0.0,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": CLASSIFICATION_PROMPT.format(text=text.strip())}],
            )
        except anthropic.APIError as e:
            logger.warning(f"Food classifier API error: {e}")
            return unclassified(text)

        try:
            data = _parse_classifier_response(response.content[0].text)
            return _build_classification(data, text)
        except (json.JSONDecodeError, ValueError, KeyError, IndexError, AttributeError) as e:
            logger.warning(f"Unparseable food classifier response: {e}")
            return unclassified(text)
