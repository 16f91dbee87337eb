"""Confidence level and input method enums."""

from enum import Enum


class ConfidenceLevel(str, Enum):
    """Model's self-reported certainty in a diagnosis."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class InputMethod(str, Enum):
    """How the farmer supplied the case."""

    IMAGE = "image"  # Uploaded photo, optionally with a description
    DESCRIPTION = "description"  # Text description only
    LIVE = "live"  # Camera snapshot
    AUDIO = "audio"  # Recording of flock sounds
