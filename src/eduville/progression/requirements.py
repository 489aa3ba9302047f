"""Requirement evaluation over a read-only progress snapshot.

A requirement bundle is a conjunction of independent clauses. Evaluating a
bundle never mutates anything: the same report backs both the preview shown
to the player ("need 3 more Mathematics grades") and the gate used by the
mutating advance operations in ``eduville.progression.service``.

World content (locations, classes, subjects) is held in an id-indexed
:class:`World` arena; characters only carry ids into it.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Protocol

from eduville.progression.rounding import round_half_up, round_half_up_int

DEFAULT_SUBJECT_LEVEL = 1
DEFAULT_PREVIOUS_LOCATION_PERCENT = 100


# ---------------------------------------------------------------------------
# World arena and snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LocationDef:
    id: str
    name: str
    type: str
    order_index: int
    allowed_subjects: tuple[str, ...] = ()
    unlock_requirement: dict[str, Any] | None = None


@dataclass(frozen=True)
class ClassDef:
    id: str
    location_id: str
    grade_number: int
    required_grades_per_subject: int
    allowed_subjects: tuple[str, ...] = ()
    requirements: dict[str, Any] | None = None


@dataclass
class World:
    """Id-indexed collections of static world content."""

    subjects: dict[str, str] = field(default_factory=dict)
    locations: dict[str, LocationDef] = field(default_factory=dict)
    classes: dict[str, ClassDef] = field(default_factory=dict)

    def subject_name(self, subject_id: str) -> str:
        return self.subjects.get(subject_id, subject_id)

    def classes_in(self, location_id: str) -> list[ClassDef]:
        """Classes of a location in grade order."""
        return sorted(
            (c for c in self.classes.values() if c.location_id == location_id),
            key=lambda c: c.grade_number,
        )

    def ordered_locations(self) -> list[LocationDef]:
        return sorted(self.locations.values(), key=lambda loc: loc.order_index)

    def next_location(self, location_id: str) -> LocationDef | None:
        current = self.locations[location_id]
        for loc in self.locations.values():
            if loc.order_index == current.order_index + 1:
                return loc
        return None

    def first_location_of_type(self, location_type: str) -> LocationDef | None:
        for loc in self.ordered_locations():
            if loc.type == location_type:
                return loc
        return None


@dataclass(frozen=True)
class GradeRecord:
    class_id: str
    subject_id: str
    score: int


@dataclass
class ProgressSnapshot:
    """Everything the evaluator may read about one character."""

    subject_levels: dict[str, int]
    grades: list[GradeRecord]
    cash: int = 0

    def level_of(self, subject_id: str) -> int:
        return self.subject_levels.get(subject_id, DEFAULT_SUBJECT_LEVEL)

    def grade_counts(self, class_id: str) -> Counter[str]:
        """Grades per subject collected in one class."""
        return Counter(g.subject_id for g in self.grades if g.class_id == class_id)

    def grade_count(self, class_id: str, subject_id: str) -> int:
        return sum(1 for g in self.grades if g.class_id == class_id and g.subject_id == subject_id)


# ---------------------------------------------------------------------------
# Clauses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClauseResult:
    """Outcome of one clause, with enough detail to render the exact deficit."""

    kind: str
    met: bool
    current: int | float
    required: int | float
    subject_id: str | None = None
    label: str = ""

    @property
    def missing(self) -> int | float:
        return max(0, self.required - self.current)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "met": self.met,
            "current": self.current,
            "required": self.required,
            "missing": self.missing,
            "subject_id": self.subject_id,
            "label": self.label,
        }


class Clause(Protocol):
    def evaluate(self, snapshot: ProgressSnapshot, world: World) -> ClauseResult: ...


@dataclass(frozen=True)
class SubjectLevelClause:
    subject_id: str
    min_level: int

    def evaluate(self, snapshot: ProgressSnapshot, world: World) -> ClauseResult:
        current = snapshot.level_of(self.subject_id)
        return ClauseResult(
            kind="subject_level",
            met=self.min_level <= 0 or current >= self.min_level,
            current=current,
            required=self.min_level,
            subject_id=self.subject_id,
            label=f"{world.subject_name(self.subject_id)} level {self.min_level}",
        )


@dataclass(frozen=True)
class GradeQuantityClause:
    class_id: str
    subject_id: str
    required: int

    def evaluate(self, snapshot: ProgressSnapshot, world: World) -> ClauseResult:
        current = snapshot.grade_count(self.class_id, self.subject_id)
        return ClauseResult(
            kind="grade_quantity",
            met=current >= self.required,
            current=current,
            required=self.required,
            subject_id=self.subject_id,
            label=f"{world.subject_name(self.subject_id)} grades",
        )


@dataclass(frozen=True)
class GradeQualityClause:
    """At least ``count`` grades scoring ``min_score`` or more in a subject."""

    subject_id: str
    min_score: int
    count: int
    class_id: str | None = None

    def evaluate(self, snapshot: ProgressSnapshot, world: World) -> ClauseResult:
        current = sum(
            1
            for g in snapshot.grades
            if g.subject_id == self.subject_id
            and g.score >= self.min_score
            and (self.class_id is None or g.class_id == self.class_id)
        )
        return ClauseResult(
            kind="grade_quality",
            met=current >= self.count,
            current=current,
            required=self.count,
            subject_id=self.subject_id,
            label=f"{world.subject_name(self.subject_id)} grades of {self.min_score}+",
        )


@dataclass(frozen=True)
class CompletionPercentClause:
    location_id: str
    required_percent: float

    def evaluate(self, snapshot: ProgressSnapshot, world: World) -> ClauseResult:
        current = completion_percent(world, self.location_id, snapshot)
        return ClauseResult(
            kind="completion_percent",
            met=current >= self.required_percent,
            current=current,
            required=self.required_percent,
            label=f"{world.locations[self.location_id].name} completion",
        )


@dataclass(frozen=True)
class GradeAverageClause:
    location_type: str
    min_average: int

    def evaluate(self, snapshot: ProgressSnapshot, world: World) -> ClauseResult:
        current = grade_average(world, self.location_type, snapshot)
        return ClauseResult(
            kind="grade_average",
            met=current >= self.min_average,
            current=current,
            required=self.min_average,
            label=f"{self.location_type.replace('_', ' ')} grade average",
        )


@dataclass(frozen=True)
class BalanceClause:
    cost: int

    def evaluate(self, snapshot: ProgressSnapshot, world: World) -> ClauseResult:
        return ClauseResult(
            kind="balance",
            met=snapshot.cash >= self.cost,
            current=snapshot.cash,
            required=self.cost,
            label="cash",
        )


# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------


@dataclass
class RequirementReport:
    clauses: list[ClauseResult]

    @property
    def satisfied(self) -> bool:
        return all(c.met for c in self.clauses)

    @property
    def unmet(self) -> list[ClauseResult]:
        return [c for c in self.clauses if not c.met]

    def of_kind(self, kind: str) -> list[ClauseResult]:
        return [c for c in self.clauses if c.kind == kind]


@dataclass
class RequirementBundle:
    """Conjunction of clauses. An empty bundle is vacuously satisfied."""

    clauses: list[Clause] = field(default_factory=list)

    def evaluate(self, snapshot: ProgressSnapshot, world: World) -> RequirementReport:
        return RequirementReport([clause.evaluate(snapshot, world) for clause in self.clauses])


def evaluate(bundle: RequirementBundle, snapshot: ProgressSnapshot, world: World) -> RequirementReport:
    return bundle.evaluate(snapshot, world)


# ---------------------------------------------------------------------------
# Derived metrics
# ---------------------------------------------------------------------------


def relevant_subjects(world: World, class_def: ClassDef, snapshot: ProgressSnapshot) -> list[str]:
    """Class override, else the location's allowed set, else every subject in progress."""
    if class_def.allowed_subjects:
        return list(class_def.allowed_subjects)
    location = world.locations[class_def.location_id]
    if location.allowed_subjects:
        return list(location.allowed_subjects)
    return list(snapshot.subject_levels)


def completion_percent(world: World, location_id: str, snapshot: ProgressSnapshot) -> float:
    """Grade-count completion of a location, computed fresh from raw grades.

    Each subject contributes at most ``required_grades_per_subject`` grades per
    class, so piling grades into one subject cannot inflate the percentage.
    """
    classes = world.classes_in(location_id)
    if not classes:
        return 0.0

    total_required = 0
    total_collected = 0
    for class_def in classes:
        subjects = relevant_subjects(world, class_def, snapshot)
        per_subject = class_def.required_grades_per_subject
        total_required += per_subject * len(subjects)

        counts = snapshot.grade_counts(class_def.id)
        total_collected += sum(min(counts.get(s, 0), per_subject) for s in subjects)

    if total_required == 0:
        return 0.0

    return min(100.0, round_half_up(100 * total_collected / total_required, 2))


def grade_average(world: World, location_type: str, snapshot: ProgressSnapshot) -> int:
    """Rounded mean score over grades earned in classes of the first location of a type."""
    location = world.first_location_of_type(location_type)
    if location is None:
        return 0

    class_ids = {c.id for c in world.classes_in(location.id)}
    scores = [g.score for g in snapshot.grades if g.class_id in class_ids]
    if not scores:
        return 0
    return round_half_up_int(sum(scores) / len(scores))


# ---------------------------------------------------------------------------
# Bundle builders
# ---------------------------------------------------------------------------


def class_completion_bundle(world: World, class_def: ClassDef, snapshot: ProgressSnapshot) -> RequirementBundle:
    """Gate for completing a class: enough grades in every relevant subject."""
    return RequirementBundle([
        GradeQuantityClause(class_def.id, subject_id, class_def.required_grades_per_subject)
        for subject_id in relevant_subjects(world, class_def, snapshot)
    ])


def class_advancement_bundle(world: World, class_def: ClassDef, snapshot: ProgressSnapshot) -> RequirementBundle:
    """Full preview bundle for a class: grade counts, subject levels and grade quality."""
    reqs = class_def.requirements or {}
    min_subject_level = reqs.get("min_subject_level") or 0
    overrides = {sl["subject_id"]: sl["min_level"] for sl in reqs.get("subject_levels") or []}

    clauses: list[Clause] = []
    for subject_id in relevant_subjects(world, class_def, snapshot):
        clauses.append(GradeQuantityClause(class_def.id, subject_id, class_def.required_grades_per_subject))
        required_level = overrides.get(subject_id) or min_subject_level
        if required_level:
            clauses.append(SubjectLevelClause(subject_id, required_level))

    for quality in reqs.get("min_grade_quality") or []:
        clauses.append(
            GradeQualityClause(
                subject_id=quality["subject_id"],
                min_score=quality["min_grade"],
                count=quality["count"],
                class_id=class_def.id,
            )
        )
    return RequirementBundle(clauses)


def location_unlock_bundle(world: World, location: LocationDef, from_location_id: str) -> RequirementBundle:
    """Gate for entering ``location`` from the character's current location."""
    req = location.unlock_requirement
    if not req:
        return RequirementBundle()

    previous_id = req.get("previous_location_id") or from_location_id
    required_percent = req.get("previous_location_percent") or DEFAULT_PREVIOUS_LOCATION_PERCENT
    clauses: list[Clause] = [CompletionPercentClause(previous_id, required_percent)]
    clauses.extend(
        SubjectLevelClause(sl["subject_id"], sl["min_level"])
        for sl in req.get("required_subject_levels") or []
    )
    return RequirementBundle(clauses)


def specialization_bundle(
    requirements: dict[str, Any],
    unlock_cost: int,
    assessment_location_type: str = "school",
) -> RequirementBundle:
    """Gate for picking a specialization: subject levels, grade average, cash."""
    clauses: list[Clause] = [
        SubjectLevelClause(sl["subject_id"], sl["min_level"])
        for sl in requirements.get("required_subject_levels") or []
    ]
    clauses.append(GradeAverageClause(assessment_location_type, requirements.get("min_grade_average") or 0))
    clauses.append(BalanceClause(unlock_cost))
    return RequirementBundle(clauses)
