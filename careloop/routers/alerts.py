"""
Alert feed router.

PUT /alerts — upsert one public-health alert by source_alert_id
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from careloop.db.base import get_db
from careloop.schemas.alerts import AlertResponse, AlertUpsertRequest
from careloop.services.alert_generator import upsert_alert

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.put("", response_model=AlertResponse, summary="Upsert a public-health alert")
def put_alert(body: AlertUpsertRequest, db: Session = Depends(get_db)):
    alert, created = upsert_alert(db, **body.model_dump())
    response = AlertResponse.model_validate(alert)
    response.created = created
    return response
