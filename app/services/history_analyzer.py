"""Dashboard analytics over a user's diagnosis history.

Everything here is a pure function of the record snapshot it is given: no
I/O, no shared state, and no exceptions for malformed individual records.
A record with an unparseable timestamp is left out of the day buckets but
still counts towards the totals; an unrecognised confidence level lands in
none of the three confidence buckets.
"""

from collections import Counter
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from app.models.analytics import (
    ActivityBucket,
    ConfidenceBucket,
    DerivedSummary,
    DiseaseCount,
)
from app.models.confidence import ConfidenceLevel
from app.models.diagnosis import DiagnosisRecord

logger = logging.getLogger(__name__)

ACTIVITY_WINDOW_DAYS = 7
DEFAULT_TOP_DISEASES = 5

NO_DATA_LABEL = "N/A"
UNNAMED_DISEASE_LABEL = "Various"

# Fixed display order and chart colour per level
CONFIDENCE_COLORS = {
    ConfidenceLevel.HIGH.value: "hsl(var(--chart-2))",
    ConfidenceLevel.MEDIUM.value: "hsl(var(--chart-4))",
    ConfidenceLevel.LOW.value: "hsl(var(--chart-1))",
}


def resolve_timezone(name: str) -> tzinfo:
    """Map an IANA zone name to a tzinfo, falling back to UTC."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown activity timezone '{name}', using UTC")
        return timezone.utc


def parse_timestamp(value, tz: tzinfo) -> Optional[datetime]:
    """Parse an ISO-8601 instant into ``tz``; None if it cannot be read.

    A trailing ``Z`` is accepted. Naive values are taken to be in ``tz``.
    """
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=tz)
        return parsed.astimezone(tz)
    except (ValueError, OverflowError):
        return None


def local_day(value, tz: tzinfo) -> Optional[date]:
    """Calendar date of a timestamp in ``tz``."""
    parsed = parse_timestamp(value, tz)
    return parsed.date() if parsed else None


def day_label(day: date) -> str:
    """Short chart label such as ``Oct 9``."""
    return f"{day:%b} {day.day}"


class HistoryAnalyzer:
    """Derives dashboard summaries from a snapshot of diagnosis records."""

    def __init__(
        self, top_n: int = DEFAULT_TOP_DISEASES, tz: tzinfo = timezone.utc
    ):
        if top_n < 1:
            raise ValueError("top_n must be at least 1")
        self.top_n = top_n
        self.tz = tz

    def today(self) -> date:
        return datetime.now(self.tz).date()

    def disease_frequency(
        self, records: Sequence[DiagnosisRecord]
    ) -> List[DiseaseCount]:
        """Top diseases by count; ties keep first-seen order."""
        counts: Counter = Counter()
        for record in records:
            for name in getattr(record, "possible_diseases", None) or []:
                counts[name] += 1

        # most_common is stable for equal counts (insertion order)
        return [
            DiseaseCount(name=name, count=count)
            for name, count in counts.most_common(self.top_n)
        ]

    def confidence_distribution(
        self, records: Sequence[DiagnosisRecord]
    ) -> List[ConfidenceBucket]:
        tally = dict.fromkeys(CONFIDENCE_COLORS, 0)
        for record in records:
            level = getattr(record, "confidence_level", None)
            if level in tally:
                tally[level] += 1

        total = len(records)
        return [
            ConfidenceBucket(
                level=level,
                count=count,
                color=CONFIDENCE_COLORS[level],
                percentage=round(count / total * 100) if total else 0,
            )
            for level, count in tally.items()
        ]

    def recent_activity(
        self, records: Sequence[DiagnosisRecord], today: Optional[date] = None
    ) -> List[ActivityBucket]:
        """Seven day buckets ending on ``today``, oldest first."""
        today = today or self.today()
        days = [
            today - timedelta(days=offset)
            for offset in range(ACTIVITY_WINDOW_DAYS - 1, -1, -1)
        ]
        buckets = dict.fromkeys(days, 0)

        for record in records:
            day = local_day(getattr(record, "timestamp", None), self.tz)
            if day in buckets:
                buckets[day] += 1

        return [
            ActivityBucket(day=day, label=day_label(day), count=count)
            for day, count in buckets.items()
        ]

    def summarize(
        self, records: Sequence[DiagnosisRecord], today: Optional[date] = None
    ) -> DerivedSummary:
        """Compute every dashboard view from ``records``."""
        records = list(records)
        frequency = self.disease_frequency(records)
        total = len(records)

        if frequency:
            most_common = frequency[0].name
        elif total:
            most_common = UNNAMED_DISEASE_LABEL
        else:
            most_common = NO_DATA_LABEL

        return DerivedSummary(
            disease_frequency=frequency,
            confidence_distribution=self.confidence_distribution(records),
            recent_activity=self.recent_activity(records, today=today),
            total_diagnoses=total,
            most_common_disease=most_common,
        )


def summarize(
    records: Sequence[DiagnosisRecord],
    top_n: int = DEFAULT_TOP_DISEASES,
    tz: tzinfo = timezone.utc,
    today: Optional[date] = None,
) -> DerivedSummary:
    """Shortcut for ``HistoryAnalyzer(top_n, tz).summarize(records, today)``."""
    return HistoryAnalyzer(top_n=top_n, tz=tz).summarize(records, today=today)
