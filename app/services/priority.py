"""
Priority Ranker for urgent appointment requests.
"""
import logging
from datetime import date, time
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.all_models import UrgentRequest, UrgentRequestStatus, User

logger = logging.getLogger(__name__)

BASE_SCORE = 50
MAX_SCORE = 100

SEVERITY_TERMS = ("severe", "extreme", "emergency")
TRAUMA_TERMS = ("bleeding", "trauma", "injury")
INFECTION_TERMS = ("fever", "swelling", "infection")
PAIN_QUALIFIERS = ("severe", "unbearable")


def _mentions(text: str, terms) -> bool:
    return any(term in text for term in terms)


def calculate_priority_score(urgency_reason: str, symptoms: Optional[str] = None) -> int:
    reason = urgency_reason.lower()
    symptom_text = (symptoms or "").lower()

    score = BASE_SCORE
    if _mentions(reason, SEVERITY_TERMS):
        score += 30
    if _mentions(reason, TRAUMA_TERMS):
        score += 25
    if _mentions(symptom_text, INFECTION_TERMS):
        score += 20
    if "pain" in reason and _mentions(reason, PAIN_QUALIFIERS):
        score += 15

    return max(0, min(score, MAX_SCORE))


def ranked(query):
    """Highest priority first, newest first among equals."""
    return query.order_by(
        UrgentRequest.priority_score.desc(),
        UrgentRequest.created_at.desc(),
        UrgentRequest.id.desc()
    )


def create_urgent_request(
    db: Session,
    patient: User,
    urgency_reason: str,
    symptoms: Optional[str] = None,
    preferred_date: Optional[date] = None,
    preferred_time: Optional[time] = None,
    service_id: Optional[int] = None,
) -> UrgentRequest:
    request = UrgentRequest(
        patient_id=patient.id,
        urgency_reason=urgency_reason,
        symptoms=symptoms,
        preferred_date=preferred_date,
        preferred_time=preferred_time,
        service_id=service_id,
        priority_score=calculate_priority_score(urgency_reason, symptoms),
        status=UrgentRequestStatus.PENDING,
    )
    db.add(request)
    db.commit()
    db.refresh(request)

    logger.info(
        "Urgent appointment requested: id=%s patient=%s priority=%s",
        request.id, patient.id, request.priority_score
    )
    return request


def list_urgent_requests(
    db: Session,
    patient: User,
    status: Optional[UrgentRequestStatus] = None,
) -> List[UrgentRequest]:
    query = db.query(UrgentRequest).filter(UrgentRequest.patient_id == patient.id)
    if status:
        query = query.filter(UrgentRequest.status == status)
    return ranked(query).all()


def urgent_queue(
    db: Session,
    status: UrgentRequestStatus = UrgentRequestStatus.PENDING,
    limit: int = 100,
) -> List[UrgentRequest]:
    query = db.query(UrgentRequest).filter(UrgentRequest.status == status)
    return ranked(query).limit(limit).all()
