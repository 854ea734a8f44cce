"""
Company Statistics Queries

Aggregate queries behind the cached company statistics.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from cache import CachedStatistics

from .models import Company

logger = logging.getLogger(__name__)


def start_of_month(now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def compute_company_statistics(db: Session, now: datetime | None = None) -> CachedStatistics:
    """Count companies by status and industry, plus this month's additions.

    Args:
        db: Database session
        now: Reference time for the current month

    Returns:
        Fresh CachedStatistics (last_updated is stamped by the cache)
    """
    status_counts = dict(
        db.execute(
            select(Company.status, func.count(Company.id)).group_by(Company.status)
        ).all()
    )

    by_industry = {
        industry or "Unspecified": total
        for industry, total in db.execute(
            select(Company.industry, func.count(Company.id)).group_by(Company.industry)
        ).all()
    }

    new_this_month = db.scalar(
        select(func.count(Company.id)).where(Company.created_at >= start_of_month(now))
    ) or 0

    logger.debug(f"Computed company statistics: {status_counts}")

    return CachedStatistics(
        total_active=status_counts.get("Active", 0),
        total_passive=status_counts.get("Passive", 0),
        by_industry=by_industry,
        new_this_month=new_this_month,
    )
