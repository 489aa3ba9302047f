"""Pydantic schemas for progression, study and specialization endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from eduville.characters.schemas import ItemDrop


class ClauseResponse(BaseModel):
    kind: str
    met: bool
    current: float
    required: float
    missing: float
    subject_id: str | None = None
    label: str = ""


class LocationProgressEntry(BaseModel):
    location_id: str
    name: str
    type: str
    order_index: int
    completion_percent: float
    is_completed: bool
    is_unlocked: bool
    is_current: bool
    class_count: int


class GradeCountResponse(BaseModel):
    collected: int
    required: int


class ProgressResponse(BaseModel):
    character_id: int
    current_location_id: str
    current_class_id: str | None
    current_specialization_id: str | None
    locations: list[LocationProgressEntry]
    current_class_grades: dict[str, GradeCountResponse]


class ClassPreviewResponse(BaseModel):
    class_id: str
    grade_number: int
    next_class_id: str | None
    can_complete: bool
    can_advance: bool
    clauses: list[ClauseResponse]


class CompleteClassResponse(BaseModel):
    completed_class_id: str
    next_class_id: str | None
    location_id: str
    location_completion_percent: float
    location_completed: bool


class LocationPreviewResponse(BaseModel):
    current_location_id: str
    current_completion_percent: float
    next_location_id: str | None
    can_advance: bool
    clauses: list[ClauseResponse]


class AdvanceLocationResponse(BaseModel):
    previous_location_id: str
    location_id: str
    class_id: str | None


class SpecializationEntry(BaseModel):
    id: str
    name: str
    location_id: str
    unlock_cost: int
    is_selected: bool
    can_select: bool
    clauses: list[ClauseResponse]


class SelectSpecializationResponse(BaseModel):
    specialization_id: str
    cost: int
    cash: int


# --- Study ---


class SubjectXpGain(BaseModel):
    subject_id: str
    xp_gained: int
    level: int
    xp: int
    leveled_up: bool


class StudyGrade(BaseModel):
    subject_id: str
    subject_name: str
    score: int
    display: str


class StudyResponse(BaseModel):
    character_xp_gained: int
    level: int
    xp: int
    leveled_up: bool
    subject_xp_gains: list[SubjectXpGain]
    cash_gained: int
    cash: int
    grade: StudyGrade | None
    study_energy: int
    study_clicks_in_current_class: int
    clicks_until_next_grade: int
    cooldown_until: datetime
    item_drop: ItemDrop | None = None
