"""Unit tests for requirement clauses, bundles and derived progress metrics."""

from eduville.progression.requirements import (
    BalanceClause,
    ClassDef,
    GradeQualityClause,
    GradeRecord,
    LocationDef,
    ProgressSnapshot,
    RequirementBundle,
    SubjectLevelClause,
    World,
    class_advancement_bundle,
    class_completion_bundle,
    completion_percent,
    evaluate,
    grade_average,
    location_unlock_bundle,
    specialization_bundle,
)


def _world() -> World:
    return World(
        subjects={"math": "Mathematics", "lit": "Literature", "art": "Art"},
        locations={
            "prep": LocationDef("prep", "Prep School", "prep_school", 0, allowed_subjects=("math", "lit")),
            "school": LocationDef(
                "school",
                "School",
                "school",
                1,
                unlock_requirement={
                    "previous_location_id": "prep",
                    "previous_location_percent": 100,
                    "required_subject_levels": [{"subject_id": "math", "min_level": 4}],
                },
            ),
            "college": LocationDef("college", "College", "college", 2),
        },
        classes={
            "prep-1": ClassDef("prep-1", "prep", 0, 2),
            "school-1": ClassDef(
                "school-1",
                "school",
                1,
                2,
                allowed_subjects=("math",),
                requirements={
                    "min_subject_level": 3,
                    "subject_levels": [{"subject_id": "math", "min_level": 5}],
                    "min_grade_quality": [{"subject_id": "math", "min_grade": 70, "count": 1}],
                },
            ),
            "school-2": ClassDef("school-2", "school", 2, 2),
        },
    )


def _grades(class_id: str, subject_id: str, *scores: int) -> list[GradeRecord]:
    return [GradeRecord(class_id, subject_id, s) for s in scores]


class TestClauses:
    def test_unknown_subject_defaults_to_level_one(self):
        snapshot = ProgressSnapshot(subject_levels={}, grades=[])
        result = SubjectLevelClause("math", 1).evaluate(snapshot, _world())
        assert result.met
        assert result.current == 1

    def test_zero_min_level_is_always_met(self):
        snapshot = ProgressSnapshot(subject_levels={"math": 1}, grades=[])
        assert SubjectLevelClause("math", 0).evaluate(snapshot, _world()).met

    def test_missing_reports_exact_deficit(self):
        snapshot = ProgressSnapshot(subject_levels={"math": 2}, grades=[])
        result = SubjectLevelClause("math", 5).evaluate(snapshot, _world())
        assert not result.met
        assert result.missing == 3
        assert result.label == "Mathematics level 5"

    def test_quality_counts_only_qualifying_scores(self):
        snapshot = ProgressSnapshot(
            subject_levels={},
            grades=_grades("school-1", "math", 69, 70, 95) + _grades("school-2", "math", 99),
        )
        scoped = GradeQualityClause("math", 70, 3, class_id="school-1").evaluate(snapshot, _world())
        assert scoped.current == 2
        assert not scoped.met
        unscoped = GradeQualityClause("math", 70, 3).evaluate(snapshot, _world())
        assert unscoped.current == 3
        assert unscoped.met

    def test_balance(self):
        snapshot = ProgressSnapshot(subject_levels={}, grades=[], cash=150)
        result = BalanceClause(200).evaluate(snapshot, _world())
        assert not result.met
        assert result.missing == 50


class TestBundles:
    def test_empty_bundle_is_satisfied(self):
        report = evaluate(RequirementBundle(), ProgressSnapshot(subject_levels={}, grades=[]), _world())
        assert report.satisfied
        assert report.unmet == []

    def test_completion_bundle_uses_location_subjects(self):
        world = _world()
        snapshot = ProgressSnapshot(
            subject_levels={"math": 1, "lit": 1, "art": 1},
            grades=_grades("prep-1", "math", 50, 60),
        )
        report = evaluate(class_completion_bundle(world, world.classes["prep-1"], snapshot), snapshot, world)
        assert {c.subject_id for c in report.clauses} == {"math", "lit"}
        assert [c.subject_id for c in report.unmet] == ["lit"]
        assert report.unmet[0].missing == 2

    def test_advancement_bundle_prefers_per_subject_level(self):
        world = _world()
        snapshot = ProgressSnapshot(
            subject_levels={"math": 4},
            grades=_grades("school-1", "math", 80, 40),
        )
        report = evaluate(class_advancement_bundle(world, world.classes["school-1"], snapshot), snapshot, world)
        level = report.of_kind("subject_level")[0]
        assert level.required == 5
        assert not level.met
        assert report.of_kind("grade_quantity")[0].met
        assert report.of_kind("grade_quality")[0].met
        assert not report.satisfied

    def test_location_without_requirement_is_open(self):
        world = _world()
        bundle = location_unlock_bundle(world, world.locations["college"], "school")
        assert bundle.clauses == []

    def test_location_unlock_combines_percent_and_levels(self):
        world = _world()
        snapshot = ProgressSnapshot(
            subject_levels={"math": 4, "lit": 1},
            grades=_grades("prep-1", "math", 50, 50) + _grades("prep-1", "lit", 50),
        )
        report = evaluate(location_unlock_bundle(world, world.locations["school"], "prep"), snapshot, world)
        percent = report.of_kind("completion_percent")[0]
        assert percent.current == 75.0
        assert percent.required == 100
        assert not percent.met
        assert report.of_kind("subject_level")[0].met

    def test_specialization_bundle(self):
        world = _world()
        snapshot = ProgressSnapshot(
            subject_levels={"math": 20},
            grades=_grades("school-1", "math", 80, 70),
            cash=1000,
        )
        bundle = specialization_bundle(
            {"required_subject_levels": [{"subject_id": "math", "min_level": 20}], "min_grade_average": 70},
            2000,
        )
        report = evaluate(bundle, snapshot, world)
        assert [c.kind for c in report.unmet] == ["balance"]


class TestMetrics:
    def test_completion_caps_each_subject(self):
        world = _world()
        # Ten math grades cannot stand in for the missing literature grades
        snapshot = ProgressSnapshot(subject_levels={}, grades=_grades("prep-1", "math", *([50] * 10)))
        assert completion_percent(world, "prep", snapshot) == 50.0

    def test_every_subject_at_quota_is_exactly_complete(self):
        world = _world()
        # Extra literature grades beyond the quota do not push past 100
        snapshot = ProgressSnapshot(
            subject_levels={},
            grades=_grades("prep-1", "math", 40, 60) + _grades("prep-1", "lit", 55, 65, 75),
        )
        assert completion_percent(world, "prep", snapshot) == 100.0

    def test_every_class_at_quota_completes_multi_class_location(self):
        world = _world()
        snapshot = ProgressSnapshot(
            subject_levels={"math": 1, "lit": 1, "art": 1},
            grades=_grades("school-1", "math", 70, 80)
            + _grades("school-2", "math", 50, 50)
            + _grades("school-2", "lit", 50, 50)
            + _grades("school-2", "art", 50, 50),
        )
        assert completion_percent(world, "school", snapshot) == 100.0

    def test_completion_of_location_without_classes_is_zero(self):
        snapshot = ProgressSnapshot(subject_levels={"math": 1}, grades=[])
        assert completion_percent(_world(), "college", snapshot) == 0.0

    def test_completion_rounds_to_two_decimals(self):
        world = _world()
        # school-1 needs 2 math; school-2 falls back to the three subjects in progress
        snapshot = ProgressSnapshot(
            subject_levels={"math": 1, "lit": 1, "art": 1},
            grades=_grades("school-1", "math", 50),
        )
        assert completion_percent(world, "school", snapshot) == 12.5

    def test_grade_average_over_first_location_of_type(self):
        world = _world()
        snapshot = ProgressSnapshot(
            subject_levels={},
            grades=_grades("school-1", "math", 70, 75) + _grades("prep-1", "math", 10),
        )
        assert grade_average(world, "school", snapshot) == 73  # 72.5 rounds up

    def test_grade_average_without_grades_is_zero(self):
        assert grade_average(_world(), "school", ProgressSnapshot(subject_levels={}, grades=[])) == 0
