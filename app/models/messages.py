"""API request and response models."""

from pydantic import BaseModel, Field
from typing import Optional, List
from app.models.confidence import InputMethod
from app.models.diagnosis import DiagnosisRecord


class DiagnoseRequest(BaseModel):
    """Request to diagnose from a photo and/or symptom description."""

    input_method: InputMethod = Field(
        InputMethod.IMAGE, description="image, live or description"
    )
    photo_data_uri: Optional[str] = Field(
        None, description="Photo as 'data:<mimetype>;base64,<encoded_data>'"
    )
    symptom_description: Optional[str] = Field(
        None, max_length=4000, description="Free-text description of the symptoms"
    )


class AudioDiagnoseRequest(BaseModel):
    """Request to diagnose from a recording of flock sounds."""

    audio_data_uri: str = Field(
        ..., description="Audio as 'data:<mimetype>;base64,<encoded_data>'"
    )


class DiagnosisHistoryResponse(BaseModel):
    """Paginated diagnosis history, most recent first."""

    total: int
    limit: int
    offset: int
    diagnoses: List[DiagnosisRecord]


class UsageResponse(BaseModel):
    """Daily diagnosis allowance for the current user."""

    diagnoses_today: int
    daily_limit: int
    remaining: int


class ClearHistoryResponse(BaseModel):
    """Result of clearing a user's history."""

    deleted: int
