# inspection_engine/routers/comparisons.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..db import get_db
from ..schemas import ComparisonOut, ComparisonRequest, IssueOut, IssueOverride
from ..services import comparison_engine as engine
from ..workers.comparison_tasks import dispatch_comparison

router = APIRouter(prefix="/comparisons", tags=["comparisons"])


@router.post("", response_model=ComparisonOut)
def run_comparison(payload: ComparisonRequest, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    """
    Claims the (entry, exit) pair and runs it, on a worker when a broker is
    configured. A failed run comes back as status=failed, not as an HTTP error.
    """
    row = engine.claim_comparison(
        db,
        actor=actor,
        entry_inspection_id=payload.entry_inspection_id,
        exit_inspection_id=payload.exit_inspection_id,
    )
    row = dispatch_comparison(db, row.id, reset=payload.reset)
    return ComparisonOut.model_validate(row)


@router.get("/{comparison_id}", response_model=ComparisonOut)
def get_comparison(comparison_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return ComparisonOut.model_validate(engine.get_comparison(db, actor=actor, comparison_id=comparison_id))


@router.post("/issues/{issue_id}/override", response_model=IssueOut)
def override_issue(issue_id: int, payload: IssueOverride, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    issue = engine.override_issue(db, actor=actor, issue_id=issue_id, **payload.model_dump())
    return IssueOut.model_validate(issue)
