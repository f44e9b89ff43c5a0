"""
Tests for the hard-constraint checks and the evaluator that aggregates them.
"""

import pytest

from examplanner.graph_build import StudentRegistry
from examplanner.models import (
    ConstraintKind, Exam, Invigilator, InvigilatorAvailability, Room,
    ScheduleAssignment, Timeslot,
)
from examplanner.scheduling import constraints
from examplanner.scheduling.constraints import (
    Candidate, ConstraintEvaluator, check_double_booking, check_forbidden_slot,
    check_invigilator_double_booking, check_invigilator_load, check_room_capacity,
    check_student_clash, current_load,
)

MATHS = Exam("e1", "MA101", "Maths", 2, ("s1", "s2"))
PHYSICS = Exam("e2", "PH101", "Physics", 2, ("s2", "s3"))
HISTORY = Exam("e3", "HI101", "History", 2, ("s4",))
HALL = Room("r1", "Hall", 10)
LAB = Room("r2", "Lab", 10)
MORNING = Timeslot("t1", "2024-05-15", "09:00", "12:00", "Morning")
AFTERNOON = Timeslot("t2", "2024-05-15", "14:00", "17:00", "Afternoon")
NEXT_DAY = Timeslot("t3", "2024-05-16", "09:00", "12:00", "Morning")
SUNDAY = Timeslot("t4", "2024-05-19", "09:00", "12:00", "Morning", is_forbidden=True)
ALICE = Invigilator("i1", "Alice", max_load=2)
BOB = Invigilator("i2", "Bob", max_load=1)


@pytest.fixture
def registry():
    return StudentRegistry.build([MATHS, PHYSICS, HISTORY])


@pytest.fixture
def evaluator(registry):
    return ConstraintEvaluator(registry, [MATHS, PHYSICS, HISTORY], [MORNING, AFTERNOON, NEXT_DAY, SUNDAY])


def booked(exam, room, slot, inv):
    return ScheduleAssignment(exam.id, room.id, slot.id, inv.id, len(exam.enrolled_students))


class TestIndividualChecks:
    def test_room_capacity_boundary(self):
        assert check_room_capacity(HALL, 10).ok
        result = check_room_capacity(HALL, 11)
        assert not result.ok
        assert result.constraint == ConstraintKind.ROOM_CAPACITY
        assert result.detail.startswith("VIOLATION")

    def test_double_booking_same_room_same_slot(self):
        existing = [booked(MATHS, HALL, MORNING, ALICE)]
        assert not check_double_booking(HALL, MORNING, existing).ok
        assert check_double_booking(HALL, AFTERNOON, existing).ok
        assert check_double_booking(LAB, MORNING, existing).ok

    def test_student_clash_only_at_same_timeslot(self, registry):
        existing = [booked(MATHS, HALL, MORNING, ALICE)]
        clash = check_student_clash(PHYSICS, MORNING, existing, registry, {MATHS.id: MATHS})
        assert not clash.ok
        assert "MA101" in clash.detail and "PH101" in clash.detail
        assert check_student_clash(PHYSICS, AFTERNOON, existing, registry).ok
        assert check_student_clash(HISTORY, MORNING, existing, registry).ok

    def test_forbidden_slot(self):
        assert check_forbidden_slot(MORNING).ok
        assert not check_forbidden_slot(SUNDAY).ok

    def test_invigilator_load_limit(self):
        assert check_invigilator_load(BOB, 0).ok
        result = check_invigilator_load(BOB, 1)
        assert not result.ok
        assert result.constraint == ConstraintKind.INVIGILATOR_LOAD

    def test_unavailable_invigilator_always_fails(self):
        away = Invigilator("i9", "Away", InvigilatorAvailability.UNAVAILABLE, max_load=5)
        result = check_invigilator_load(away, 0)
        assert not result.ok
        assert "unavailable" in result.detail

    def test_invigilator_double_booking_reported_as_load(self):
        existing = [booked(MATHS, HALL, MORNING, ALICE)]
        result = check_invigilator_double_booking(ALICE, MORNING, existing)
        assert not result.ok
        assert result.constraint == ConstraintKind.INVIGILATOR_LOAD
        assert check_invigilator_double_booking(ALICE, AFTERNOON, existing).ok

    def test_current_load_per_day(self):
        existing = [booked(MATHS, HALL, MORNING, ALICE), booked(HISTORY, HALL, NEXT_DAY, ALICE)]
        slots = {t.id: t for t in (MORNING, NEXT_DAY)}
        assert current_load(ALICE, existing) == 2
        assert current_load(ALICE, existing, "2024-05-16", slots) == 1
        assert current_load(BOB, existing) == 0


class TestConstraintEvaluator:
    def test_checks_run_in_fixed_order(self, evaluator):
        result = evaluator.validate_assignment(Candidate(MATHS, HALL, MORNING, ALICE, 2), [])
        assert result.is_valid
        assert [c.constraint for c in result.checks] == [
            ConstraintKind.ROOM_CAPACITY,
            ConstraintKind.DOUBLE_BOOKING,
            ConstraintKind.STUDENT_CLASH,
            ConstraintKind.FORBIDDEN_SLOT,
            ConstraintKind.INVIGILATOR_LOAD,
            ConstraintKind.INVIGILATOR_LOAD,
        ]
        assert result.violations == ()

    def test_forbidden_check_skipped_when_disabled(self, registry):
        evaluator = ConstraintEvaluator(registry, [MATHS], [SUNDAY], check_forbidden=False)
        result = evaluator.validate_assignment(Candidate(MATHS, HALL, SUNDAY, ALICE, 2), [])
        assert result.is_valid
        assert ConstraintKind.FORBIDDEN_SLOT not in [c.constraint for c in result.checks]

    def test_collects_every_violation(self, evaluator):
        existing = [booked(MATHS, HALL, MORNING, BOB)]
        result = evaluator.validate_assignment(Candidate(PHYSICS, HALL, MORNING, BOB, 50), existing)
        assert not result.is_valid
        kinds = [v.constraint for v in result.violations]
        assert kinds == [
            ConstraintKind.ROOM_CAPACITY,
            ConstraintKind.DOUBLE_BOOKING,
            ConstraintKind.STUDENT_CLASH,
            ConstraintKind.INVIGILATOR_LOAD,
            ConstraintKind.INVIGILATOR_LOAD,
        ]
        capacity = result.violations[0].details
        assert capacity == {"room_capacity": 10, "student_count": 50}
        assert result.violations[1].details["conflicting_exam_id"] == "e1"
        assert result.violations[2].details["shared_students"] == ["s2"]
        assert result.violations[3].details["current_load"] == 1
        assert result.violations[3].details["max_load"] == 1

    def test_causes_contradiction_is_negation(self, evaluator):
        existing = [booked(MATHS, HALL, MORNING, ALICE)]
        assert evaluator.causes_contradiction(Candidate(PHYSICS, LAB, MORNING, BOB, 2), existing)
        assert not evaluator.causes_contradiction(Candidate(PHYSICS, LAB, AFTERNOON, BOB, 2), existing)

    def test_per_day_load_ignores_other_dates(self, registry):
        existing = [booked(MATHS, HALL, MORNING, BOB)]
        slots = [MORNING, AFTERNOON, NEXT_DAY]
        per_run = ConstraintEvaluator(registry, [MATHS, HISTORY], slots)
        per_day = ConstraintEvaluator(registry, [MATHS, HISTORY], slots, per_day_load=True)
        candidate = Candidate(HISTORY, HALL, NEXT_DAY, BOB, 1)
        assert per_run.causes_contradiction(candidate, existing)
        assert not per_day.causes_contradiction(candidate, existing)
        assert per_day.causes_contradiction(Candidate(HISTORY, HALL, AFTERNOON, BOB, 1), existing)

    def test_conflict_lookups_run_once_per_candidate(self, evaluator, monkeypatch):
        calls = {"room": 0, "student": 0}
        find_room_booking = constraints.find_room_booking
        find_student_clash = constraints.find_student_clash

        def counted_room_booking(*args):
            calls["room"] += 1
            return find_room_booking(*args)

        def counted_student_clash(*args):
            calls["student"] += 1
            return find_student_clash(*args)

        monkeypatch.setattr(constraints, "find_room_booking", counted_room_booking)
        monkeypatch.setattr(constraints, "find_student_clash", counted_student_clash)
        existing = [booked(MATHS, HALL, MORNING, ALICE)]
        result = evaluator.validate_assignment(Candidate(PHYSICS, HALL, MORNING, BOB, 2), existing)
        assert [v.constraint for v in result.violations][:2] == [ConstraintKind.DOUBLE_BOOKING,
                                                                ConstraintKind.STUDENT_CLASH]
        assert result.violations[1].details["conflicting_exam_id"] == "e1"
        assert calls == {"room": 1, "student": 1}
