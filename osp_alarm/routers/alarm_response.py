# osp_alarm/routers/alarm_response.py
"""
Alarm response endpoints.
POST /alarm/trigger            — create alarm from a detected dispatcher call
POST /alarm/{alarm_id}/respond — record one firefighter's TAK/NIE
GET  /alarm/{alarm_id}/stats   — live response statistics (polled by devices)
GET  /alarm/active             — currently open alarm (polled for discovery)
PUT  /alarm/{alarm_id}/close   — close the response window
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session
from osp_alarm.database import get_db
from osp_alarm.errors import ValidationError, NotFoundError, AlarmClosedError, StorageError
from osp_alarm.schemas.alarm import AlarmTriggerIn, AlarmRespondIn, AlarmOut, ActiveAlarmOut
from osp_alarm.services.alarm_trigger_service import trigger_alarm
from osp_alarm.services.response_service import record_response
from osp_alarm.services.stats_service import get_alarm_stats
from osp_alarm.services.alarm_lifecycle_service import get_active_alarm, close_alarm

router = APIRouter()

_DB_ERROR = "Database error"


@router.post("/alarm/trigger", summary="Create alarm from an incoming dispatcher call")
def trigger(body: AlarmTriggerIn, db: Session = Depends(get_db)):
    """
    Creates the alarm and seeds a NIE response for every firefighter with a phone.
    Returns 201 for a new alarm, 200 when the call resolved to an existing one.
    """
    try:
        result = trigger_alarm(db, body.call_phone_number, body.alarm_time)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=_DB_ERROR)

    payload = result.to_dict()
    payload["message"] = ("Alarm already exists" if result.deduplicated
                          else "Alarm created successfully")
    return JSONResponse(
        status_code=status.HTTP_200_OK if result.deduplicated else status.HTTP_201_CREATED,
        content=jsonable_encoder(payload),
    )


@router.get("/alarm/active", response_model=ActiveAlarmOut, summary="Currently open alarm")
def active_alarm(db: Session = Depends(get_db)):
    """Devices that did not detect the call poll this to learn about a new alarm."""
    try:
        alarm = get_active_alarm(db)
    except StorageError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=_DB_ERROR)
    return {"alarm": AlarmOut.model_validate(alarm) if alarm else None}


@router.post("/alarm/{alarm_id}/respond", summary="Record a firefighter's TAK/NIE")
def respond(alarm_id: int, body: AlarmRespondIn, db: Session = Depends(get_db)):
    try:
        return record_response(db, alarm_id, body.firefighter_id, body.response_type)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AlarmClosedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StorageError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=_DB_ERROR)


@router.get("/alarm/{alarm_id}/stats", summary="Alarm response statistics")
def stats(alarm_id: int, db: Session = Depends(get_db)):
    """Always 200: an alarm without responses yields zero counts."""
    try:
        result = get_alarm_stats(db, alarm_id)
    except StorageError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=_DB_ERROR)
    return {"alarmId": alarm_id, **result.to_dict()}


@router.put("/alarm/{alarm_id}/close", response_model=AlarmOut, summary="Close an alarm")
def close(alarm_id: int, db: Session = Depends(get_db)):
    try:
        return close_alarm(db, alarm_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StorageError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=_DB_ERROR)
