from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database import get_db
from app.models.all_models import User, UrgentRequestStatus
from app.routes.urgent.schemas import UrgentRequestCreate, UrgentRequestResponse
from app.services import priority
from app.services.errors import ClinicError
from app.utils.auth import get_current_user, require_staff
from app.utils.errors import server_error

router = APIRouter(prefix="/urgent-appointments", tags=["urgent-appointments"])

@router.post("", response_model=UrgentRequestResponse, status_code=status.HTTP_201_CREATED)
async def request_urgent_appointment(
    request_data: UrgentRequestCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return priority.create_urgent_request(db, current_user, **request_data.model_dump())
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error creating urgent appointment request", e)

@router.get("", response_model=List[UrgentRequestResponse])
async def get_my_urgent_requests(
    status: Optional[UrgentRequestStatus] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return priority.list_urgent_requests(db, current_user, status=status)
    except Exception as e:
        raise server_error("Error retrieving urgent appointment requests", e)

@router.get("/queue", response_model=List[UrgentRequestResponse])
async def get_urgent_queue(
    status: UrgentRequestStatus = Query(UrgentRequestStatus.PENDING),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    try:
        return priority.urgent_queue(db, status=status, limit=limit)
    except Exception as e:
        raise server_error("Error retrieving urgent queue", e)
