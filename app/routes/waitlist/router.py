from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List

from app.database import get_db
from app.models.all_models import User, WaitlistStatus
from app.routes.waitlist.schemas import WaitlistCreate, WaitlistResponse
from app.services import booking
from app.services.errors import ClinicError
from app.utils.auth import get_current_user, require_patient
from app.utils.errors import server_error

router = APIRouter(prefix="/waitlist", tags=["waitlist"])

@router.post("", response_model=WaitlistResponse, status_code=status.HTTP_201_CREATED)
async def join_waitlist(
    entry_data: WaitlistCreate,
    current_user: User = Depends(require_patient),
    db: Session = Depends(get_db)
):
    try:
        return booking.create_waitlist_entry(db, current_user, **entry_data.model_dump())
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error joining waitlist", e)

@router.get("", response_model=List[WaitlistResponse])
async def get_my_waitlist(
    status: WaitlistStatus = Query(WaitlistStatus.ACTIVE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return booking.list_waitlist(db, current_user, status=status)
    except Exception as e:
        raise server_error("Error retrieving waitlist", e)

@router.delete("/{entry_id}")
async def leave_waitlist(
    entry_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        entry = booking.remove_waitlist_entry(db, current_user, entry_id)
        return {"message": "Removed from waitlist", "entry_id": entry.id}
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error removing waitlist entry", e)
