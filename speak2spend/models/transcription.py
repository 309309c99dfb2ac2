"""Transcription-related data models.

Backends hand back loosely-typed payloads. ``Transcript`` is the validated
shape that crosses into extraction: malformed fields are defaulted here
instead of leaking ``None`` or arbitrary types further down.
"""

import math
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Transcript(BaseModel):
    """Immutable transcript text plus optional backend confidence."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    confidence: Optional[float] = None
    service: str = "unknown"
    demo_mode: bool = False

    @field_validator("text", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> str:
        if not isinstance(value, str):
            return ""
        return " ".join(value.split())

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize_confidence(cls, value: Any) -> Optional[float]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        value = float(value)
        if math.isnan(value) or value < 0.0 or value > 1.0:
            return None
        return value

    @classmethod
    def from_payload(cls, payload: Any, service: str, demo_mode: bool = False) -> "Transcript":
        """Build a transcript from a raw backend payload.

        Accepts ``{"transcript": str, "confidence": float}``; anything else
        degrades to an empty transcript.
        """
        data: Dict[str, Any] = payload if isinstance(payload, dict) else {}
        return cls(
            text=data.get("transcript"),
            confidence=data.get("confidence"),
            service=service,
            demo_mode=demo_mode,
        )

    @property
    def is_empty(self) -> bool:
        return not self.text
