"""Diagnosis Agent.

Turns a photo, a symptom description, or a recording of flock sounds into a
structured DiagnosisResult using the hosted chat model.
"""

from typing import Optional
import json
import logging

from langchain_core.messages import HumanMessage, SystemMessage

from app.agents.prompts import (
    AUDIO_DIAGNOSIS_PROMPT,
    DESCRIPTION_BLOCK,
    PHOTO_BLOCK,
    POULTRY_DIAGNOSIS_PROMPT,
    VETERINARIAN_SYSTEM_PROMPT,
)
from app.config.llm_config import get_audio_model, get_diagnosis_model
from app.models.diagnosis import DiagnosisResult
from app.utils.data_uri import parse_data_uri
from app.utils.llm_helpers import invoke_structured

logger = logging.getLogger(__name__)

# input_audio only knows a handful of container names
_AUDIO_FORMATS = {
    "mpeg": "mp3",
    "mp3": "mp3",
    "wav": "wav",
    "wave": "wav",
    "x-wav": "wav",
    "webm": "webm",
    "ogg": "ogg",
    "mp4": "mp4",
}


def _schema_text() -> str:
    return json.dumps(DiagnosisResult.model_json_schema(), indent=2)


def build_diagnosis_prompt(
    has_photo: bool, symptom_description: Optional[str] = None
) -> str:
    """Fill the diagnosis template, keeping only the blocks that have input."""
    description_block = ""
    if symptom_description:
        description_block = DESCRIPTION_BLOCK.format(
            symptom_description=symptom_description.strip()
        )
    return POULTRY_DIAGNOSIS_PROMPT.format(
        photo_block=PHOTO_BLOCK if has_photo else "",
        description_block=description_block,
        schema=_schema_text(),
    )


async def generate_poultry_diagnosis(
    photo_data_uri: Optional[str] = None,
    symptom_description: Optional[str] = None,
) -> DiagnosisResult:
    """
    Diagnose from a photo and/or a symptom description.

    Args:
        photo_data_uri: Photo as a base64 image data URI (optional)
        symptom_description: Farmer's description of the symptoms (optional)

    Returns:
        DiagnosisResult

    Raises:
        ValueError: If neither input is given or the photo is malformed
        DiagnosisGenerationError: If the model fails
    """
    if symptom_description is not None and not symptom_description.strip():
        symptom_description = None
    if not photo_data_uri and not symptom_description:
        raise ValueError("Either photo_data_uri or symptom_description must be provided.")

    content = [
        {
            "type": "text",
            "text": build_diagnosis_prompt(bool(photo_data_uri), symptom_description),
        }
    ]
    if photo_data_uri:
        parse_data_uri(photo_data_uri, "image")
        content.append({"type": "image_url", "image_url": {"url": photo_data_uri}})

    logger.info(
        "Generating poultry diagnosis (photo=%s, description=%s)",
        bool(photo_data_uri),
        bool(symptom_description),
    )
    llm = get_diagnosis_model()
    result = await invoke_structured(
        llm,
        [SystemMessage(content=VETERINARIAN_SYSTEM_PROMPT), HumanMessage(content=content)],
        DiagnosisResult,
    )
    logger.info(
        f"Diagnosis generated: confidence={result.confidence_level.value}, "
        f"diseases={result.possible_diseases}"
    )
    return result


async def generate_audio_diagnosis(audio_data_uri: str) -> DiagnosisResult:
    """
    Diagnose respiratory illness from a recording of flock sounds.

    Raises:
        ValueError: If the recording is not an audio data URI
        DiagnosisGenerationError: If the model fails
    """
    audio = parse_data_uri(audio_data_uri, "audio")
    audio_format = _AUDIO_FORMATS.get(audio.subtype, audio.subtype)

    content = [
        {"type": "text", "text": AUDIO_DIAGNOSIS_PROMPT.format(schema=_schema_text())},
        {"type": "input_audio", "input_audio": {"data": audio.data, "format": audio_format}},
    ]

    logger.info(f"Generating audio diagnosis ({audio.mime_type})")
    llm = get_audio_model()
    result = await invoke_structured(
        llm,
        [SystemMessage(content=VETERINARIAN_SYSTEM_PROMPT), HumanMessage(content=content)],
        DiagnosisResult,
    )
    logger.info(f"Audio diagnosis generated: confidence={result.confidence_level.value}")
    return result
