"""LLM configuration for GitHub Models API.

Per-flow model assignments:
  Photo / description diagnosis → settings.model_name (vision capable)
  Audio diagnosis               → settings.audio_model_name (audio input)
  Treatment plan                → settings.model_name
"""

from langchain_openai import ChatOpenAI
from langchain_core.language_models import BaseChatModel
from app.config.settings import settings
from pydantic import SecretStr
import logging

logger = logging.getLogger(__name__)


def _create_model(model_name: str) -> BaseChatModel:
    """Instantiate a ChatOpenAI client pointed at the GitHub Models endpoint."""
    logger.info(f"Creating GitHub Models client: {model_name}")
    return ChatOpenAI(
        base_url=settings.github_models_endpoint,
        api_key=SecretStr(settings.github_token),
        model=model_name,
        temperature=settings.model_temperature,
        max_completion_tokens=settings.model_max_tokens,
    )


def get_diagnosis_model() -> BaseChatModel:
    """Vision model for photo and symptom-description diagnoses."""
    return _create_model(settings.model_name)


def get_audio_model() -> BaseChatModel:
    """Audio-input model for respiratory sound diagnoses."""
    return _create_model(settings.audio_model_name)


def get_treatment_model() -> BaseChatModel:
    """Model used to draft treatment plans from a stored diagnosis."""
    return _create_model(settings.model_name)
