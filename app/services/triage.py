"""
Triage Scorer.

A symptom report arrives in one of two shapes, modelled as two dataclasses:

* ``ListSymptomReport``: free-text phrases with optional severity, duration,
  location and extra notes (what the symptom checker sends today);
* ``StructuredSymptomReport``: the older form of explicit signals
  (pain level, bleeding/swelling levels and yes/no flags).

``score_report`` dispatches on the variant and returns a ``TriageResult``.
The recommendation text and the persisted tier are derived from the same
score with different cut-offs (80/60/40 vs 70/50/30); both mappings are kept
as they are.
"""
import logging
import re
import uuid
from dataclasses import asdict, dataclass, field
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from app.models.all_models import SymptomAssessment, TriageTier

logger = logging.getLogger(__name__)

MAX_SCORE = 100

RECOMMENDATION_EMERGENCY = "URGENT: Please seek immediate emergency dental care or visit the emergency room."
RECOMMENDATION_24H = "HIGH PRIORITY: Schedule an urgent appointment within 24 hours."
RECOMMENDATION_2_3_DAYS = "MODERATE: Schedule an appointment within 2-3 days."
RECOMMENDATION_ROUTINE = "LOW PRIORITY: Monitor your symptoms and schedule a routine appointment when convenient."

PAIN_TERMS = ("pain", "ache", "aching", "sore", "hurt", "discomfort", "throb")
SWELLING_TERMS = ("swell", "swollen")
FEVER_TERMS = ("fever", "chills")
BLEEDING_TERMS = ("bleed", "blood")
TRAUMA_TERMS = ("trauma", "injur", "broken", "fracture", "knocked")

PAIN_POINTS = {"severe": 35, "moderate": 20, "mild": 10}
PAIN_POINTS_UNSPECIFIED = 8

BLEEDING_POINTS = {"severe": 20, "moderate": 10, "mild": 5}
SWELLING_POINTS = {"severe": 15, "moderate": 8}

_NUMBER = re.compile(r"\d+(?:\.\d+)?")


@dataclass
class ListSymptomReport:
    symptoms: List[str]
    severity: Optional[str] = None
    duration: Optional[str] = None
    location: Optional[str] = None
    additional_info: Optional[str] = None

    def as_record(self) -> dict:
        return {
            "symptoms_list": list(self.symptoms),
            "severity": self.severity,
            "duration": self.duration,
            "location": self.location,
            "additional_info": self.additional_info,
        }


@dataclass
class StructuredSymptomReport:
    pain_level: int = 0
    bleeding: Optional[str] = None
    swelling: Optional[str] = None
    fever: bool = False
    difficulty_breathing: bool = False
    difficulty_swallowing: bool = False
    trauma: bool = False
    extra: dict = field(default_factory=dict)

    def as_record(self) -> dict:
        record = asdict(self)
        record.update(record.pop("extra"))
        return record


SymptomReport = Union[ListSymptomReport, StructuredSymptomReport]


@dataclass(frozen=True)
class TriageResult:
    score: int
    red_flag: bool
    recommendation: str
    tier: TriageTier


def parse_duration_days(raw) -> Optional[float]:
    """
    Read a reported duration as a number of days.

    Accepts plain numbers ("3") and short phrases ("2 days", "5 hours", "1 week").
    Anything mentioning hours counts as under a day. Returns None when no
    amount can be read.
    """
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return float(raw)

    text = str(raw).strip().lower()
    match = _NUMBER.search(text)
    amount = float(match.group()) if match else None

    if "hour" in text or "minute" in text:
        return min(amount or 0.0, 24.0) / 24.0
    if amount is None:
        return None
    if "week" in text:
        return amount * 7
    if "month" in text:
        return amount * 30
    return amount


def _any_phrase(phrases: List[str], terms) -> bool:
    return any(term in phrase for phrase in phrases for term in terms)


def _clamp(score: int) -> int:
    return max(0, min(score, MAX_SCORE))


def _score_list(report: ListSymptomReport):
    phrases = [phrase.lower() for phrase in report.symptoms]
    severity = (report.severity or "").lower() or None
    days = parse_duration_days(report.duration)

    has_pain = _any_phrase(phrases, PAIN_TERMS)
    has_swelling = _any_phrase(phrases, SWELLING_TERMS)
    has_fever = _any_phrase(phrases, FEVER_TERMS)
    has_bleeding = _any_phrase(phrases, BLEEDING_TERMS)
    has_trauma = _any_phrase(phrases, TRAUMA_TERMS)
    # "bad breath" is a routine complaint, not a breathing problem
    has_breathing = any("breath" in phrase and "bad breath" not in phrase for phrase in phrases)
    has_swallowing = _any_phrase(phrases, ("swallow",))

    severe = severity == "severe"
    prolonged_severe = severe and days is not None and days >= 2

    score = 0
    if has_pain:
        score += PAIN_POINTS.get(severity, PAIN_POINTS_UNSPECIFIED)
    if has_swelling:
        score += 15
    if has_fever:
        score += 15
    if has_bleeding:
        score += 20
    if has_trauma:
        score += 25

    if has_breathing:
        score = max(score, 85)
    if has_swallowing:
        score = max(score, 80)
    if has_fever and has_swelling:
        score = max(score, 80)
    if prolonged_severe:
        score = max(score, 70)
    if severe and days is not None and days <= 1:
        score += 5

    red_flag = (
        has_breathing or has_swallowing or (has_fever and has_swelling)
        or has_trauma or has_bleeding or prolonged_severe
    )
    return _clamp(score), red_flag


def _score_structured(report: StructuredSymptomReport):
    bleeding = (report.bleeding or "").lower()
    swelling = (report.swelling or "").lower()

    score = int(report.pain_level or 0) * 2
    score += BLEEDING_POINTS.get(bleeding, 0)
    score += SWELLING_POINTS.get(swelling, 0)
    if report.fever:
        score += 15
    if report.difficulty_breathing:
        score += 25
    if report.difficulty_swallowing:
        score += 20
    if report.trauma:
        score += 15

    red_flag = (
        report.difficulty_breathing or report.difficulty_swallowing or report.trauma
        or bleeding == "severe" or swelling == "severe"
    )
    return _clamp(score), bool(red_flag)


def recommendation_for(score: int, red_flag: bool) -> str:
    if red_flag or score >= 80:
        return RECOMMENDATION_EMERGENCY
    if score >= 60:
        return RECOMMENDATION_24H
    if score >= 40:
        return RECOMMENDATION_2_3_DAYS
    return RECOMMENDATION_ROUTINE


def tier_for(score: int, red_flag: bool) -> TriageTier:
    if red_flag or score >= 70:
        return TriageTier.URGENT
    if score >= 50:
        return TriageTier.HIGH
    if score >= 30:
        return TriageTier.MODERATE
    return TriageTier.LOW


def score_report(report: SymptomReport) -> TriageResult:
    match report:
        case ListSymptomReport():
            score, red_flag = _score_list(report)
        case StructuredSymptomReport():
            score, red_flag = _score_structured(report)
        case _:
            raise TypeError(f"Unsupported symptom report: {type(report).__name__}")

    return TriageResult(
        score=score,
        red_flag=red_flag,
        recommendation=recommendation_for(score, red_flag),
        tier=tier_for(score, red_flag),
    )


# ================================
# PERSISTENCE
# ================================

def submit_assessment(
    db: Session,
    report: SymptomReport,
    user_id: Optional[int] = None,
    session_id: Optional[str] = None,
) -> SymptomAssessment:
    result = score_report(report)
    assessment = SymptomAssessment(
        user_id=user_id,
        session_id=session_id or str(uuid.uuid4()),
        symptoms=report.as_record(),
        urgency_score=result.score,
        red_flag=result.red_flag,
        recommendations=result.recommendation,
        triage_result=result.tier,
    )
    db.add(assessment)
    db.commit()
    db.refresh(assessment)

    logger.info(
        "Symptom assessment created: id=%s score=%s tier=%s anonymous=%s",
        assessment.id, result.score, result.tier.value, user_id is None
    )
    return assessment


def list_assessments(
    db: Session,
    user_id: Optional[int] = None,
    session_id: Optional[str] = None,
) -> List[SymptomAssessment]:
    """Assessments for a user, a session, or both. With neither, nothing is returned."""
    if user_id is None and session_id is None:
        return []
    query = db.query(SymptomAssessment)
    if user_id is not None:
        query = query.filter(SymptomAssessment.user_id == user_id)
    if session_id is not None:
        query = query.filter(SymptomAssessment.session_id == session_id)
    return query.order_by(SymptomAssessment.created_at.desc(), SymptomAssessment.id.desc()).all()
