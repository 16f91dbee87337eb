"""Treatment Agent.

Drafts a treatment plan (medication, management, nutrition, follow-up) for
an existing diagnosis.
"""

from typing import List, Optional
import json
import logging

from langchain_core.messages import HumanMessage, SystemMessage

from app.agents.prompts import (
    TREATMENT_DESCRIPTION_BLOCK,
    TREATMENT_PLAN_PROMPT,
    VETERINARIAN_SYSTEM_PROMPT,
)
from app.config.llm_config import get_treatment_model
from app.models.treatment import TreatmentPlan
from app.utils.llm_helpers import invoke_structured

logger = logging.getLogger(__name__)


def _bullets(items: List[str]) -> str:
    return "\n".join(f"  - {item}" for item in items) or "  - none recorded"


def build_treatment_prompt(
    diagnosis: str,
    possible_diseases: List[str],
    identified_issues: List[str],
    symptom_description: Optional[str] = None,
) -> str:
    description_block = ""
    if symptom_description:
        description_block = TREATMENT_DESCRIPTION_BLOCK.format(
            symptom_description=symptom_description.strip()
        )
    return TREATMENT_PLAN_PROMPT.format(
        diagnosis=diagnosis,
        possible_diseases=_bullets(possible_diseases),
        identified_issues=_bullets(identified_issues),
        description_block=description_block,
        schema=json.dumps(TreatmentPlan.model_json_schema(), indent=2),
    )


async def generate_treatment_recommendations(
    diagnosis: str,
    possible_diseases: List[str],
    identified_issues: List[str],
    symptom_description: Optional[str] = None,
) -> TreatmentPlan:
    """
    Generate an actionable treatment plan.

    Args:
        diagnosis: The main diagnosis text
        possible_diseases: Diseases named by the diagnosis
        identified_issues: Symptoms or sounds observed
        symptom_description: Farmer's original description (optional)

    Returns:
        TreatmentPlan

    Raises:
        DiagnosisGenerationError: If the model fails
    """
    logger.info(f"Generating treatment plan for diseases={possible_diseases}")

    prompt = build_treatment_prompt(
        diagnosis, possible_diseases, identified_issues, symptom_description
    )
    llm = get_treatment_model()
    plan = await invoke_structured(
        llm,
        [SystemMessage(content=VETERINARIAN_SYSTEM_PROMPT), HumanMessage(content=prompt)],
        TreatmentPlan,
    )

    logger.info(
        f"Treatment plan generated with {len(plan.medication_suggestions)} medication suggestions"
    )
    return plan
