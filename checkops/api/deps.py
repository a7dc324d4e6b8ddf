from typing import Iterator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from checkops.sdk import CheckOps


def get_checkops(request: Request) -> CheckOps:
    return request.app.state.checkops


def get_db(checkops: CheckOps = Depends(get_checkops)) -> Iterator[Session]:
    with checkops.session() as db:
        yield db
