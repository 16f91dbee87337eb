"""Treatment plan schemas."""

from pydantic import BaseModel, Field
from typing import List, Optional


class MedicationSuggestion(BaseModel):
    """A single medication with dosage guidance."""

    name: str
    dosage: str
    notes: Optional[str] = None


class TreatmentPlan(BaseModel):
    """Actionable treatment plan generated for a diagnosis."""

    medication_suggestions: List[MedicationSuggestion] = Field(default_factory=list)
    management_advice: List[str] = Field(default_factory=list)
    nutritional_support: List[str] = Field(default_factory=list)
    follow_up_actions: List[str] = Field(default_factory=list)
