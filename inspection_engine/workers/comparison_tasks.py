# inspection_engine/workers/comparison_tasks.py
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import update

from ..config import settings
from ..db import SessionLocal
from ..domain.enums import ComparisonStatus
from ..models import AIComparison
from ..services.comparison_engine import execute_comparison
from .celery_app import celery_app

log = logging.getLogger("inspections.worker")


@celery_app.task(name="inspection_engine.workers.comparison_tasks.run_comparison")
def run_comparison(comparison_id: int, reset: bool = False) -> dict:
    """
    Executes a claimed AIComparison.

    Not retried: execute_comparison records failures on the row, and a re-run is
    an explicit new claim by the owner. Anything that still escapes is recorded
    here so the row never sits in processing until the stale window.
    """
    db = SessionLocal()
    try:
        row = db.get(AIComparison, int(comparison_id))
        if row is None:
            return {"ok": False, "reason": "comparison_not_found"}
        if row.status != ComparisonStatus.PROCESSING.value:
            return {"ok": True, "status": row.status, "idempotent": True}

        row = execute_comparison(db, int(comparison_id), reset=bool(reset))
        return {"ok": row.status == ComparisonStatus.COMPLETED.value, "status": row.status, "total_issues": row.total_issues}
    except Exception as e:
        log.exception("comparison task crashed", extra={"comparison_id": comparison_id})
        error = f"{type(e).__name__}: {e}"
        try:
            db.rollback()
            db.execute(
                update(AIComparison)
                .where(
                    AIComparison.id == int(comparison_id),
                    AIComparison.status == ComparisonStatus.PROCESSING.value,
                )
                .values(status=ComparisonStatus.FAILED.value, error_message=error[:2000], processed_at=datetime.utcnow())
            )
            db.commit()
        except Exception:
            db.rollback()
            log.exception("could not record comparison failure", extra={"comparison_id": comparison_id})
        return {"ok": False, "status": ComparisonStatus.FAILED.value, "error": error}
    finally:
        db.close()


def dispatch_comparison(db, comparison_id: int, *, reset: bool = False) -> AIComparison:
    """
    Queues the run when a broker is configured, otherwise runs it inline on the
    caller's session.
    """
    if settings.celery_broker_url:
        run_comparison.apply_async(args=[int(comparison_id)], kwargs={"reset": bool(reset)})
        log.info("comparison queued", extra={"comparison_id": comparison_id})
        return db.get(AIComparison, int(comparison_id))
    return execute_comparison(db, int(comparison_id), reset=bool(reset))
