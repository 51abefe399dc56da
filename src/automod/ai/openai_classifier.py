"""
Content classifier backed by an OpenAI-compatible chat completions API.

The model is asked for a JSON object constrained by ``ANALYSIS_SCHEMA`` via
structured outputs; the reply is validated again with jsonschema before it
is turned into a :class:`ContentAnalysis`.
"""

from __future__ import annotations

import json
from typing import Any, Dict

import jsonschema
from jsonschema import ValidationError
from openai import AsyncOpenAI
from openai.types.shared_params.response_format_json_schema import ResponseFormatJSONSchema

from automod.configuration.ai_settings import AISettings
from automod.datatypes.analysis_datatypes import ANALYSIS_SCHEMA, ContentAnalysis
from automod.exceptions import ContentClassificationError
from automod.util.logger import get_logger

logger = get_logger("openai_classifier")

SYSTEM_PROMPT = (
    "You review Discord messages for community guideline violations. "
    "Consider the supplied context, prefer 'none' when the message is benign, "
    "and flag possible false positives such as quotes, jokes between friends, "
    "or reclaimed language. When a violation is found, write a short, friendly "
    "educational message addressed to the author."
)


def _extract_json_payload(raw: str) -> Any:
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.startswith("json"):
            cleaned = cleaned[4:]
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ContentClassificationError(f"Classifier returned invalid JSON: {exc}") from exc


def parse_analysis(raw: str) -> ContentAnalysis:
    """Parse and validate a raw classifier reply.

    Raises:
        ContentClassificationError: If the reply is not valid JSON or violates the schema.
    """
    payload = _extract_json_payload(raw)
    try:
        jsonschema.validate(instance=payload, schema=ANALYSIS_SCHEMA)
    except ValidationError as exc:
        raise ContentClassificationError(f"Classifier reply failed validation: {exc.message}") from exc
    return ContentAnalysis.from_dict(payload)


class OpenAIContentClassifier:
    """Implements the content classifier contract with ``AsyncOpenAI``."""

    def __init__(self, client: AsyncOpenAI, model_name: str) -> None:
        self._client = client
        self._model_name = model_name
        self._response_format = ResponseFormatJSONSchema(
            type="json_schema",
            json_schema={
                "name": "content_analysis",
                "strict": True,
                "schema": ANALYSIS_SCHEMA,
            },
        )

    @classmethod
    def from_settings(cls, settings: AISettings) -> "OpenAIContentClassifier":
        client = AsyncOpenAI(api_key=settings.api_key, base_url=settings.base_url)
        logger.info(
            "[AI CLASSIFIER] Initialized with base_url=%s, model=%s",
            settings.base_url, settings.model_name,
        )
        return cls(client, settings.model_name or "")

    async def analyze(self, text: str, context: Dict[str, Any]) -> ContentAnalysis:
        response = await self._client.chat.completions.create(
            model=self._model_name,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": json.dumps({"message": text, "context": context}),
                },
            ],
            response_format=self._response_format,
        )
        if not response.choices:
            raise ContentClassificationError("Classifier returned no choices")
        raw = response.choices[0].message.content or ""
        logger.debug("[AI CLASSIFIER] Received %d chars", len(raw))
        return parse_analysis(raw)
