# inspection_engine/workers/comparison_worker.py
from __future__ import annotations

import logging

from sqlalchemy import select

from ..db import SessionLocal
from ..domain.enums import ComparisonStatus
from ..logging_config import configure_logging
from ..models import AIComparison
from ..services.comparison_engine import execute_comparison

log = logging.getLogger("inspections.worker")


def main(limit: int = 50) -> int:
    """
    Manual worker (CLI):
    - Useful in dev if you don't want celery running
    - Drains comparisons left in processing (claimed but never executed)
    Returns how many rows were executed.
    """
    db = SessionLocal()
    try:
        ids = db.scalars(
            select(AIComparison.id)
            .where(AIComparison.status == ComparisonStatus.PROCESSING.value)
            .order_by(AIComparison.id.asc())
            .limit(limit)
        ).all()

        for comparison_id in ids:
            row = execute_comparison(db, int(comparison_id))
            log.info(
                "comparison drained",
                extra={"comparison_id": row.id, "inspection_id": row.exit_inspection_id},
            )
        return len(ids)
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    main()
