"""
Data models for query anonymization.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AnonymizationMethod(str, Enum):
    """Strategy tier that produced an anonymized query."""

    ADVANCED = "advanced"
    RULE_BASED = "rule-based"
    FALLBACK = "fallback"


class AnonymizationResult(BaseModel):
    """
    Outcome of anonymizing one query.

    ``anonymized_query`` is empty only for empty input: strategies that
    would empty a query revert to the original text instead.
    """

    model_config = ConfigDict(frozen=True)

    original_query: str = Field(..., description="Query as received")
    anonymized_query: str = Field(..., description="Query sent to backends")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Heuristic transformation score")
    preserved_semantics: list[str] = Field(
        default_factory=list, description="Categories touched, in first-seen order"
    )
    method: AnonymizationMethod = Field(..., description="Strategy tier used")
    processing_time_ms: float = Field(default=0.0, ge=0.0)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire format."""
        return {
            "originalQuery": self.original_query,
            "anonymizedQuery": self.anonymized_query,
            "confidence": self.confidence,
            "preservedSemantics": list(self.preserved_semantics),
            "method": self.method.value,
            "processingTime": round(self.processing_time_ms, 3),
        }


class EngineStatus(BaseModel):
    """Status snapshot of the anonymization engine."""

    model_config = ConfigDict(protected_namespaces=())

    initialized: bool
    model_loaded: bool
    rules_count: int
    version: str
    model_type: str
    model_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire format."""
        return {
            "initialized": self.initialized,
            "modelLoaded": self.model_loaded,
            "rulesCount": self.rules_count,
            "version": self.version,
            "modelType": self.model_type,
            "modelPath": self.model_path,
        }
