"""Diagnosis API endpoints.

Farmers submit a photo, a live camera snapshot, a symptom description, or a
recording of flock sounds. Each successful diagnosis is stored in the
user's history, which can be listed, inspected, deleted, or cleared. A
treatment plan can be requested for any stored diagnosis.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.api.dependencies import get_activity_timezone, get_current_user, get_store
from app.agents.diagnosis_agent import generate_audio_diagnosis, generate_poultry_diagnosis
from app.agents.treatment_agent import generate_treatment_recommendations
from app.config.settings import settings
from app.models.confidence import InputMethod
from app.models.diagnosis import DiagnosisRecord
from app.models.messages import (
    AudioDiagnoseRequest,
    ClearHistoryResponse,
    DiagnoseRequest,
    DiagnosisHistoryResponse,
    UsageResponse,
)
from app.models.treatment import TreatmentPlan
from app.services.diagnosis_store import DiagnosisStore
from app.utils.llm_helpers import DiagnosisGenerationError
from contextlib import asynccontextmanager
from datetime import datetime, tzinfo
from typing import Dict
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/diagnoses", tags=["Diagnoses"])


async def _usage(store: DiagnosisStore, user_id: str, tz: tzinfo) -> UsageResponse:
    used = await store.used_on_day(user_id, datetime.now(tz).date())
    return UsageResponse(
        diagnoses_today=used,
        daily_limit=settings.daily_diagnosis_limit,
        remaining=max(0, settings.daily_diagnosis_limit - used),
    )


@asynccontextmanager
async def _daily_slot(store: DiagnosisStore, user_id: str, tz: tzinfo):
    """
    Hold one of today's diagnosis slots for the duration of the block.

    Raises 429 when the user has none left. The slot is given back if the
    block fails, so only diagnoses that were actually created count.
    """
    day = datetime.now(tz).date()
    limit = settings.daily_diagnosis_limit
    if not await store.reserve_daily_slot(user_id, day, limit):
        logger.info(f"Daily diagnosis limit reached for user {user_id}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=(
                f"You have reached the limit of {limit} diagnoses "
                "for today. Please try again tomorrow."
            ),
        )

    try:
        yield
    except BaseException:
        await store.release_daily_slot(user_id, day)
        raise


async def _get_owned(store: DiagnosisStore, user_id: str, record_id: str) -> DiagnosisRecord:
    record = await store.get(user_id, record_id)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Diagnosis not found"
        )
    return record


@router.post("", response_model=DiagnosisRecord, status_code=status.HTTP_201_CREATED)
async def create_diagnosis(
    request: DiagnoseRequest,
    current_user: Dict[str, str] = Depends(get_current_user),
    store: DiagnosisStore = Depends(get_store),
    tz: tzinfo = Depends(get_activity_timezone),
):
    """
    Diagnose from a photo, a live snapshot, and/or a symptom description.

    The photo is only used for the image and live input methods.
    """
    user_id = current_user["user_id"]

    if request.input_method == InputMethod.AUDIO:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Use /api/v1/diagnoses/audio for audio recordings",
        )

    photo_data_uri = None
    if request.input_method in (InputMethod.IMAGE, InputMethod.LIVE):
        photo_data_uri = request.photo_data_uri

    async with _daily_slot(store, user_id, tz):
        try:
            result = await generate_poultry_diagnosis(
                photo_data_uri=photo_data_uri,
                symptom_description=request.symptom_description,
            )
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except DiagnosisGenerationError as e:
            logger.error(f"Diagnosis failed for user {user_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Diagnosis failed. Please try again.",
            )

        record = DiagnosisRecord.from_result(
            result,
            user_id=user_id,
            input_method=request.input_method,
            symptom_description=request.symptom_description,
            photo_data_uri=photo_data_uri,
        )
        await store.add(record)
    return record


@router.post("/audio", response_model=DiagnosisRecord, status_code=status.HTTP_201_CREATED)
async def create_audio_diagnosis(
    request: AudioDiagnoseRequest,
    current_user: Dict[str, str] = Depends(get_current_user),
    store: DiagnosisStore = Depends(get_store),
    tz: tzinfo = Depends(get_activity_timezone),
):
    """Diagnose respiratory illness from a recording of flock sounds."""
    user_id = current_user["user_id"]

    async with _daily_slot(store, user_id, tz):
        try:
            result = await generate_audio_diagnosis(request.audio_data_uri)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except DiagnosisGenerationError as e:
            logger.error(f"Audio diagnosis failed for user {user_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Audio diagnosis failed. Please try again.",
            )

        record = DiagnosisRecord.from_result(
            result,
            user_id=user_id,
            input_method=InputMethod.AUDIO,
            audio_data_uri=request.audio_data_uri,
        )
        await store.add(record)
    return record


@router.get("", response_model=DiagnosisHistoryResponse)
async def get_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: Dict[str, str] = Depends(get_current_user),
    store: DiagnosisStore = Depends(get_store),
):
    """
    Get the user's diagnosis history.

    Ordered by most recent first.
    """
    user_id = current_user["user_id"]
    total = await store.count_for_user(user_id)
    records = await store.list_for_user(user_id, limit=limit, offset=offset)
    return DiagnosisHistoryResponse(
        total=total, limit=limit, offset=offset, diagnoses=records
    )


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    current_user: Dict[str, str] = Depends(get_current_user),
    store: DiagnosisStore = Depends(get_store),
    tz: tzinfo = Depends(get_activity_timezone),
):
    """How many diagnoses the user has left today."""
    return await _usage(store, current_user["user_id"], tz)


@router.delete("", response_model=ClearHistoryResponse)
async def clear_history(
    current_user: Dict[str, str] = Depends(get_current_user),
    store: DiagnosisStore = Depends(get_store),
):
    """Permanently delete the user's whole diagnosis history."""
    deleted = await store.clear(current_user["user_id"])
    logger.info(f"History cleared by user {current_user['user_id']} ({deleted} records)")
    return ClearHistoryResponse(deleted=deleted)


@router.get("/{record_id}", response_model=DiagnosisRecord)
async def get_diagnosis(
    record_id: str,
    current_user: Dict[str, str] = Depends(get_current_user),
    store: DiagnosisStore = Depends(get_store),
):
    return await _get_owned(store, current_user["user_id"], record_id)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_diagnosis(
    record_id: str,
    current_user: Dict[str, str] = Depends(get_current_user),
    store: DiagnosisStore = Depends(get_store),
):
    """
    Permanently delete one diagnosis.

    Returns 204 No Content on success.
    """
    deleted = await store.delete(current_user["user_id"], record_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Diagnosis not found"
        )
    logger.info(f"Diagnosis {record_id} deleted by user {current_user['user_id']}")


@router.post("/{record_id}/treatment", response_model=TreatmentPlan)
async def get_treatment_plan(
    record_id: str,
    current_user: Dict[str, str] = Depends(get_current_user),
    store: DiagnosisStore = Depends(get_store),
):
    """Generate a treatment plan for a stored diagnosis."""
    record = await _get_owned(store, current_user["user_id"], record_id)

    try:
        return await generate_treatment_recommendations(
            diagnosis=record.diagnosis,
            possible_diseases=record.possible_diseases,
            identified_issues=record.identified_issues,
            symptom_description=record.symptom_description,
        )
    except DiagnosisGenerationError as e:
        logger.error(f"Treatment plan failed for diagnosis {record_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not generate a treatment plan. Please try again.",
        )
