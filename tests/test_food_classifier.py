"""Tests for the feeding-note food classifier (no network: the client is mocked)."""

import json
import sys
from pathlib import Path
from unittest.mock import MagicMock

import anthropic
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from sleep_diagnostic.food_classifier.classifier import (
    AnthropicFoodClassifier,
    FoodClassifier,
    _build_classification,
    _parse_classifier_response,
)
from sleep_diagnostic.models import NutritionClassification, NutritionGroup
from sleep_diagnostic.rate_limiter import RateLimiter
from sleep_diagnostic.settings import Settings


def _make_response(text):
    return MagicMock(content=[MagicMock(text=text)])


def _make_classifier(response_text=None, side_effect=None):
    client = MagicMock()
    if side_effect is not None:
        client.messages.create.side_effect = side_effect
    else:
        client.messages.create.return_value = _make_response(response_text)
    settings = Settings(classifier_model="test-model")
    return AnthropicFoodClassifier(settings=settings, client=client, rate_limiter=RateLimiter(6000)), client


class _FlakyClassifier(FoodClassifier):
    """Tags everything as protein, but fails on one specific note."""

    def __init__(self, failing_text):
        self.failing_text = failing_text

    def classify(self, text):
        if text == self.failing_text:
            raise RuntimeError("upstream exploded")
        return NutritionClassification(groups=[NutritionGroup.PROTEIN], ai_classified=True, raw_text=text)


# ── Response parsing ──

def test_parse_plain_json():
    """A bare JSON object parses directly."""
    assert _parse_classifier_response('{"groups": ["fiber"], "confidence": 0.8}')["groups"] == ["fiber"]


def test_parse_code_fenced_json():
    """Markdown fences around the JSON are stripped."""
    text = '```json\n{"groups": ["protein"], "confidence": 0.9}\n```'
    assert _parse_classifier_response(text)["confidence"] == 0.9


def test_parse_json_with_surrounding_prose():
    """A sentence before the object is tolerated."""
    text = 'Here is the result: {"groups": [], "confidence": 0.5}'
    assert _parse_classifier_response(text)["groups"] == []


def test_parse_without_json_raises():
    """No object at all is a ValueError."""
    with pytest.raises(ValueError):
        _parse_classifier_response("I cannot classify this meal.")


def test_build_maps_spanish_and_drops_unknown():
    """Spanish names map to groups; unknown names and duplicates are dropped."""
    classification = _build_classification(
        {"groups": ["Proteína", "fibra", "vitaminas", "protein"], "confidence": 1.7}, "pollo con brócoli"
    )
    assert classification.groups == [NutritionGroup.PROTEIN, NutritionGroup.FIBER]
    assert classification.confidence == 1.0
    assert classification.ai_classified


# ── Single classification ──

def test_classify_calls_model_deterministically():
    """The call uses the configured model at temperature 0 and returns tagged groups."""
    classifier, client = _make_classifier('{"groups": ["protein", "carbohydrate"], "confidence": 0.95}')
    result = classifier.classify("pollo con arroz")

    assert result.ai_classified
    assert result.groups == [NutritionGroup.PROTEIN, NutritionGroup.CARBOHYDRATE]
    assert result.raw_text == "pollo con arroz"
    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["temperature"] == 0.0
    assert "pollo con arroz" in kwargs["messages"][0]["content"]


def test_empty_text_skips_api():
    """Blank notes are unclassified without calling the model."""
    classifier, client = _make_classifier('{"groups": ["fiber"]}')
    result = classifier.classify("   ")
    assert not result.ai_classified
    client.messages.create.assert_not_called()


def test_api_error_degrades_to_unclassified():
    """An Anthropic API error yields the unclassified sentinel."""
    error = anthropic.APIError("service unavailable", request=MagicMock(), body=None)
    classifier, _ = _make_classifier(side_effect=error)
    result = classifier.classify("puré de manzana")
    assert not result.ai_classified
    assert result.groups == []
    assert result.raw_text == "puré de manzana"


def test_unparseable_response_degrades_to_unclassified():
    """Garbage from the model is not an exception for the caller."""
    classifier, _ = _make_classifier("lo siento, no entiendo")
    assert not classifier.classify("huevo").ai_classified


def test_prompt_braces_render():
    """The JSON example in the prompt survives str.format."""
    classifier, client = _make_classifier(json.dumps({"groups": [], "confidence": 0.8}))
    classifier.classify("leche materna")
    content = client.messages.create.call_args.kwargs["messages"][0]["content"]
    assert '{"groups": ["protein", "fiber"], "confidence": 0.85}' in content


# ── Batch ──

def test_batch_isolates_failures():
    """5 notes with the 3rd failing: 5 results, only the 3rd unclassified."""
    texts = ["pollo", "huevo", "pescado", "res", "frijoles"]
    results = _FlakyClassifier(failing_text="pescado").classify_batch(texts)

    assert len(results) == 5
    assert not results[2].ai_classified
    assert results[2].raw_text == "pescado"
    for i in (0, 1, 3, 4):
        assert results[i].ai_classified
        assert results[i].raw_text == texts[i]


def test_batch_empty():
    """An empty batch returns no results."""
    assert _FlakyClassifier(failing_text="x").classify_batch([]) == []


def test_batch_with_mocked_client_keeps_order():
    """Concurrent classification still returns results in input order."""
    classifier, client = _make_classifier('{"groups": ["fat"], "confidence": 0.9}')
    texts = [f"aguacate {i}" for i in range(6)]
    results = classifier.classify_batch(texts)
    assert [r.raw_text for r in results] == texts
    assert client.messages.create.call_count == 6
