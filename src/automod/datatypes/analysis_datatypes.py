"""Data structures exchanged with the AI content classifier."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

ANALYSIS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "is_violation": {"type": "boolean"},
        "violation_type": {
            "type": "string",
            "enum": ["harassment", "spam", "explicit", "self-harm", "illegal", "none", "other"],
        },
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        "severity": {"type": "string", "enum": ["low", "medium", "high", "critical"]},
        "reasoning": {"type": "string"},
        "suggested_action": {
            "type": "string",
            "enum": ["none", "warn", "delete", "mute", "kick", "ban"],
        },
        "educational_message": {"type": "string"},
        "is_false_positive": {"type": "boolean"},
    },
    "required": [
        "is_violation",
        "violation_type",
        "confidence",
        "severity",
        "reasoning",
        "suggested_action",
        "educational_message",
        "is_false_positive",
    ],
    "additionalProperties": False,
}


@dataclass(slots=True)
class ContentAnalysis:
    """Classifier verdict for one piece of content."""
    is_violation: bool
    violation_type: str
    confidence: float
    severity: str
    reasoning: str = ""
    suggested_action: str = "none"
    educational_message: str = ""
    is_false_positive: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentAnalysis":
        return cls(
            is_violation=bool(data["is_violation"]),
            violation_type=str(data["violation_type"]),
            confidence=float(data["confidence"]),
            severity=str(data["severity"]),
            reasoning=str(data.get("reasoning", "")),
            suggested_action=str(data.get("suggested_action", "none")),
            educational_message=str(data.get("educational_message", "")),
            is_false_positive=bool(data.get("is_false_positive", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_violation": self.is_violation,
            "violation_type": self.violation_type,
            "confidence": self.confidence,
            "severity": self.severity,
            "reasoning": self.reasoning,
            "suggested_action": self.suggested_action,
            "educational_message": self.educational_message,
            "is_false_positive": self.is_false_positive,
        }


@dataclass(slots=True)
class AnalysisOutcome:
    """Result of :meth:`AIContentModerator.analyze`."""
    success: bool
    analysis: ContentAnalysis | None = None
    fingerprint: str | None = None
    error: str | None = None
    cached: bool = False


@dataclass(slots=True)
class AIModerationOptions:
    confidence_threshold: float | None = None
    auto_delete: bool = False
    send_educational_message: bool = False
    warn_on_violation: bool = False


@dataclass(slots=True)
class AIModerationResult:
    processed: bool
    reason: str | None = None
    error: str | None = None
    fingerprint: str | None = None
    violation: bool = False
    violation_type: str | None = None
    confidence: float | None = None
    severity: str | None = None
    suggested_action: str | None = None
    deleted: bool = False
    educational_message_sent: bool = False
    warned: bool = False
