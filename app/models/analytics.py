"""Dashboard analytics schemas derived from diagnosis history."""

from pydantic import BaseModel
from typing import List
from datetime import date


class DiseaseCount(BaseModel):
    """How many records named a disease."""

    name: str
    count: int


class ConfidenceBucket(BaseModel):
    """Count of records at one confidence level."""

    level: str
    count: int
    color: str
    percentage: int


class ActivityBucket(BaseModel):
    """Diagnoses recorded on one calendar day."""

    day: date
    label: str
    count: int


class DerivedSummary(BaseModel):
    """Analytics recomputed from the full history on every request."""

    disease_frequency: List[DiseaseCount]
    confidence_distribution: List[ConfidenceBucket]
    recent_activity: List[ActivityBucket]
    total_diagnoses: int
    most_common_disease: str
