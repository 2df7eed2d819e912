from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database import get_db
from app.models.all_models import User
from app.routes.symptoms.schemas import SymptomAssessmentCreate, SymptomAssessmentResponse
from app.services import triage
from app.services.errors import ClinicError
from app.utils.auth import get_optional_user
from app.utils.errors import server_error

router = APIRouter(prefix="/symptom-assessment", tags=["symptom-assessment"])

@router.post("", response_model=SymptomAssessmentResponse, status_code=status.HTTP_201_CREATED)
async def submit_symptom_assessment(
    assessment_data: SymptomAssessmentCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Score a symptom report. Anonymous callers get a session_id to fetch their results later."""
    try:
        return triage.submit_assessment(
            db,
            assessment_data.to_report(),
            user_id=current_user.id if current_user else None,
            session_id=assessment_data.session_id,
        )
    except (HTTPException, ClinicError):
        raise
    except Exception as e:
        db.rollback()
        raise server_error("Error processing symptom assessment", e)

@router.get("", response_model=List[SymptomAssessmentResponse])
async def get_symptom_assessments(
    session_id: Optional[str] = Query(None, max_length=64),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    try:
        return triage.list_assessments(
            db,
            user_id=current_user.id if current_user else None,
            session_id=session_id,
        )
    except Exception as e:
        raise server_error("Error retrieving symptom assessments", e)
