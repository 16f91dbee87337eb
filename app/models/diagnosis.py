"""Diagnosis result and stored diagnosis record schemas."""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime, timezone
from app.models.confidence import ConfidenceLevel, InputMethod
import uuid


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DiagnosisResult(BaseModel):
    """Structured output expected from the diagnosis model."""

    diagnosis: str = Field(..., description="Detailed diagnosis of the flock's condition")
    confidence_level: ConfidenceLevel
    identified_issues: List[str] = Field(default_factory=list)
    possible_diseases: List[str] = Field(default_factory=list)
    recommended_next_steps: List[str] = Field(default_factory=list)


class DiagnosisRecord(BaseModel):
    """Diagnosis document as stored in the user's history.

    ``confidence_level`` and ``timestamp`` are kept as plain strings so that
    records written by other clients load even when those fields are off;
    the history analyzer tolerates both.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str = ""
    timestamp: str = Field(default_factory=_utc_now_iso)
    input_method: InputMethod = InputMethod.DESCRIPTION

    # Model output
    diagnosis: str = ""
    confidence_level: str = ""
    identified_issues: List[str] = Field(default_factory=list)
    possible_diseases: List[str] = Field(default_factory=list)
    recommended_next_steps: List[str] = Field(default_factory=list)

    # Original input
    symptom_description: Optional[str] = None
    photo_data_uri: Optional[str] = None
    audio_data_uri: Optional[str] = None

    @field_validator(
        "identified_issues",
        "possible_diseases",
        "recommended_next_steps",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, value):
        return [] if value is None else value

    @field_validator("confidence_level", "timestamp", mode="before")
    @classmethod
    def _none_to_blank(cls, value):
        return "" if value is None else value

    @classmethod
    def from_result(
        cls,
        result: DiagnosisResult,
        user_id: str,
        input_method: InputMethod,
        symptom_description: Optional[str] = None,
        photo_data_uri: Optional[str] = None,
        audio_data_uri: Optional[str] = None,
    ) -> "DiagnosisRecord":
        """Build a new history record from a fresh model result."""
        return cls(
            user_id=user_id,
            input_method=input_method,
            diagnosis=result.diagnosis,
            confidence_level=result.confidence_level.value,
            identified_issues=list(result.identified_issues),
            possible_diseases=list(result.possible_diseases),
            recommended_next_steps=list(result.recommended_next_steps),
            symptom_description=symptom_description,
            photo_data_uri=photo_data_uri,
            audio_data_uri=audio_data_uri,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "user_id": "farmer42",
                "timestamp": "2024-05-01T08:30:00+00:00",
                "input_method": "description",
                "diagnosis": "Signs consistent with a respiratory infection.",
                "confidence_level": "Medium",
                "identified_issues": ["Gasping", "Nasal discharge"],
                "possible_diseases": ["Infectious Bronchitis", "Newcastle Disease"],
                "recommended_next_steps": ["Isolate affected birds"],
            }
        }
