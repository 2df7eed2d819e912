# app/routes/symptoms/schemas.py

from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional, Union
from datetime import datetime
from app.models.all_models import TriageTier
from app.services.triage import ListSymptomReport, StructuredSymptomReport, SymptomReport

Level = Literal["none", "mild", "moderate", "severe"]

class StructuredSymptoms(BaseModel):
    """Explicit signals, as sent by older clients (camelCase keys are accepted)."""
    pain_level: int = Field(0, ge=0, le=10, alias="painLevel")
    bleeding: Optional[Level] = None
    swelling: Optional[Level] = None
    fever: bool = False
    difficulty_breathing: bool = Field(False, alias="difficultyBreathing")
    difficulty_swallowing: bool = Field(False, alias="difficultySwallowing")
    trauma: bool = False

    class Config:
        populate_by_name = True

class SymptomAssessmentCreate(BaseModel):
    symptoms: Union[List[str], StructuredSymptoms]
    severity: Optional[Literal["mild", "moderate", "severe"]] = None
    duration: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=200)
    additional_info: Optional[str] = Field(None, max_length=2000)
    session_id: Optional[str] = Field(None, max_length=64)

    @field_validator("symptoms")
    @classmethod
    def symptoms_not_empty(cls, value):
        if isinstance(value, list):
            value = [phrase.strip() for phrase in value if phrase and phrase.strip()]
            if not value:
                raise ValueError("At least one symptom is required")
        return value

    @field_validator("duration", mode="before")
    @classmethod
    def duration_as_text(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def to_report(self) -> SymptomReport:
        if isinstance(self.symptoms, list):
            return ListSymptomReport(
                symptoms=self.symptoms,
                severity=self.severity,
                duration=self.duration,
                location=self.location,
                additional_info=self.additional_info,
            )
        extra = {
            field: getattr(self, field)
            for field in ("severity", "duration", "location", "additional_info")
            if getattr(self, field)
        }
        return StructuredSymptomReport(**self.symptoms.model_dump(), extra=extra)

class SymptomAssessmentResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    session_id: str
    symptoms: dict
    urgency_score: int
    red_flag: bool
    triage_result: TriageTier
    recommendations: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
