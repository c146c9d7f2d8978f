"""Monthly maintenance/complaint report."""
from collections import defaultdict
from datetime import datetime
from typing import Iterable, List

from sqlalchemy.orm import Session

from .. import models
from ..errors import ValidationFailed
from ..transitions import MaintenanceStatus

SECONDS_PER_HOUR = 60 * 60


def month_window(year: int, month: int) -> tuple[datetime, datetime]:
    """Return ``[start, end)`` covering the whole calendar month."""
    if not 1 <= month <= 12:
        raise ValidationFailed("Month must be between 1 and 12")
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def summarize(records: Iterable[models.MaintenanceRequest]) -> List[dict]:
    """
    Group records by ``(type, category, status)``.

    ``avg_resolution_hours`` only averages resolved records that carry a
    ``resolved_at``; other records add to ``count`` but not to the average.
    """
    counts = defaultdict(int)
    samples = defaultdict(list)

    for record in records:
        key = (record.type, record.category, record.status)
        counts[key] += 1
        if record.status == MaintenanceStatus.RESOLVED.value and record.resolved_at is not None:
            elapsed = record.resolved_at - record.created_at
            samples[key].append(elapsed.total_seconds() / SECONDS_PER_HOUR)

    stats = []
    for key in sorted(counts):
        hours = samples.get(key)
        stats.append({
            "type": key[0],
            "category": key[1],
            "status": key[2],
            "count": counts[key],
            "avg_resolution_hours": sum(hours) / len(hours) if hours else None,
        })
    return stats


def monthly_stats(db: Session, year: int, month: int) -> List[dict]:
    start, end = month_window(year, month)
    records = (
        db.query(models.MaintenanceRequest)
        .filter(
            models.MaintenanceRequest.created_at >= start,
            models.MaintenanceRequest.created_at < end,
        )
        .all()
    )
    return summarize(records)
