from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from checkops.api.deps import get_checkops, get_db
from checkops.models.schemas import BulkSubmissionResult, SubmissionCreate, SubmissionRead, SubmissionUpdate
from checkops.sdk import CheckOps

router = APIRouter()


@router.post("/submissions", response_model=SubmissionRead, status_code=201)
def create_submission(payload: SubmissionCreate, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)):
    return ops.submissions.create_submission(db, payload)


@router.post("/submissions/bulk", response_model=BulkSubmissionResult)
def create_submissions(
    payload: List[SubmissionCreate], ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)
):
    return ops.submissions.create_submissions(db, payload)


@router.get("/submissions", response_model=List[SubmissionRead])
def list_submissions(
    form_id: Optional[str] = Query(default=None, alias="formId"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    ops: CheckOps = Depends(get_checkops),
    db: Session = Depends(get_db),
):
    return ops.submissions.list_submissions(db, form_id=form_id, limit=limit, offset=offset)


@router.get("/submissions/{submission_id}", response_model=SubmissionRead)
def get_submission(submission_id: str, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)):
    return ops.submissions.get_submission(db, submission_id)


@router.patch("/submissions/{submission_id}", response_model=SubmissionRead)
def update_submission(
    submission_id: str, payload: SubmissionUpdate, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)
):
    return ops.submissions.update_submission(db, submission_id, payload)


@router.delete("/submissions/{submission_id}", response_model=SubmissionRead)
def delete_submission(submission_id: str, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)):
    return ops.submissions.delete_submission(db, submission_id)
