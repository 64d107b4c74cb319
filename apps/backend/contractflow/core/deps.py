from __future__ import annotations

from datetime import date

from fastapi import Depends, HTTPException, Query
from sqlalchemy.orm import Session

from contractflow.core.database import get_db
from contractflow import models
from contractflow.utils.dates import local_today


def get_today() -> date:
    """Today's calendar date in the configured zone.

    Every request computes "today" once through this dependency; tests
    override it to pin the date.
    """
    return local_today()


def get_company(company_id: int = Query(..., ge=1), db: Session = Depends(get_db)) -> models.Company:
    """Resolve the explicit company scope passed by the caller."""
    company = db.get(models.Company, company_id)
    if company is None or not company.is_active:
        raise HTTPException(status_code=404, detail="Company not found")
    return company
