from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from checkops.api.deps import get_checkops, get_db
from checkops.models.schemas import FormCreate, FormRead, FormStats, FormUpdate
from checkops.sdk import CheckOps

router = APIRouter()


@router.post("/forms", response_model=FormRead, status_code=201)
def create_form(payload: FormCreate, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)):
    return ops.forms.create_form(db, payload)


@router.get("/forms", response_model=List[FormRead])
def list_forms(
    is_active: Optional[bool] = Query(default=None, alias="isActive"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    ops: CheckOps = Depends(get_checkops),
    db: Session = Depends(get_db),
):
    return ops.forms.list_forms(db, is_active=is_active, limit=limit, offset=offset)


@router.get("/forms/{form_id}", response_model=FormRead)
def get_form(form_id: str, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)):
    return ops.forms.get_form(db, form_id)


@router.patch("/forms/{form_id}", response_model=FormRead)
def update_form(form_id: str, payload: FormUpdate, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)):
    return ops.forms.update_form(db, form_id, payload)


@router.delete("/forms/{form_id}", response_model=FormRead)
def delete_form(form_id: str, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)):
    return ops.forms.delete_form(db, form_id)


@router.get("/forms/{form_id}/stats", response_model=FormStats)
def get_form_stats(form_id: str, ops: CheckOps = Depends(get_checkops), db: Session = Depends(get_db)):
    return ops.stats.get_form_stats(db, form_id)
