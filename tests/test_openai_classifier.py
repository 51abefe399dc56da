import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from automod.ai.openai_classifier import SYSTEM_PROMPT, OpenAIContentClassifier, parse_analysis
from automod.configuration.ai_settings import AISettings
from automod.exceptions import ContentClassificationError

VALID_REPLY = {
    "is_violation": True,
    "violation_type": "spam",
    "confidence": 0.9,
    "severity": "medium",
    "reasoning": "Repeated advertisement",
    "suggested_action": "delete",
    "educational_message": "Please do not advertise here.",
    "is_false_positive": False,
}


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def mock_client(response):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


class TestParseAnalysis:
    def test_valid_reply(self):
        analysis = parse_analysis(json.dumps(VALID_REPLY))

        assert analysis.is_violation is True
        assert analysis.violation_type == "spam"
        assert analysis.confidence == 0.9

    def test_fenced_reply(self):
        raw = "```json\n" + json.dumps(VALID_REPLY) + "\n```"

        assert parse_analysis(raw).severity == "medium"

    def test_invalid_json(self):
        with pytest.raises(ContentClassificationError):
            parse_analysis("definitely not json")

    @pytest.mark.parametrize("change", [
        {"confidence": 1.5},
        {"severity": "apocalyptic"},
        {"extra": "field"},
    ])
    def test_schema_violations(self, change):
        with pytest.raises(ContentClassificationError):
            parse_analysis(json.dumps({**VALID_REPLY, **change}))

    def test_missing_field(self):
        reply = dict(VALID_REPLY)
        del reply["reasoning"]

        with pytest.raises(ContentClassificationError):
            parse_analysis(json.dumps(reply))


class TestOpenAIContentClassifier:
    @pytest.mark.asyncio
    async def test_sends_message_and_context(self):
        client = mock_client(completion(json.dumps(VALID_REPLY)))
        classifier = OpenAIContentClassifier(client, "test-model")

        analysis = await classifier.analyze("buy now", {"guild_id": "1"})

        assert analysis.violation_type == "spam"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert json.loads(kwargs["messages"][1]["content"]) == {"message": "buy now", "context": {"guild_id": "1"}}
        assert kwargs["response_format"]["json_schema"]["name"] == "content_analysis"

    @pytest.mark.asyncio
    async def test_no_choices(self):
        classifier = OpenAIContentClassifier(mock_client(SimpleNamespace(choices=[])), "m")

        with pytest.raises(ContentClassificationError):
            await classifier.analyze("buy now", {})

    @pytest.mark.asyncio
    async def test_empty_content_is_invalid(self):
        classifier = OpenAIContentClassifier(mock_client(completion(None)), "m")

        with pytest.raises(ContentClassificationError):
            await classifier.analyze("buy now", {})

    def test_from_settings(self):
        settings = AISettings({"base_url": "http://localhost:8000/v1", "model_name": "local", "api_key": "k"})

        classifier = OpenAIContentClassifier.from_settings(settings)

        assert classifier._model_name == "local"
