"""Dashboard analytics endpoint."""

from fastapi import APIRouter, Depends, Query
from app.api.dependencies import get_activity_timezone, get_current_user, get_store
from app.config.settings import settings
from app.models.analytics import DerivedSummary
from app.services.diagnosis_store import DiagnosisStore
from app.services.history_analyzer import HistoryAnalyzer
from datetime import tzinfo
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/dashboard", tags=["Dashboard"])


@router.get("/summary", response_model=DerivedSummary)
async def get_summary(
    top: Optional[int] = Query(None, ge=1, le=50, description="Diseases to rank"),
    current_user: Dict[str, str] = Depends(get_current_user),
    store: DiagnosisStore = Depends(get_store),
    tz: tzinfo = Depends(get_activity_timezone),
):
    """
    Disease frequency, confidence breakdown, 7-day activity and key metrics
    computed over the user's whole history.
    """
    records = await store.list_for_user(current_user["user_id"], include_media=False)
    analyzer = HistoryAnalyzer(top_n=top or settings.top_diseases_limit, tz=tz)
    summary = analyzer.summarize(records)

    logger.info(
        f"Dashboard summary for user {current_user['user_id']}: "
        f"{summary.total_diagnoses} diagnoses"
    )
    return summary
