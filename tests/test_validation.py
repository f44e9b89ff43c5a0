"""
Tests for auditing an existing timetable without running the search.
"""

import pytest

from examplanner.models import Exam, Room, ScheduleAssignment, Timeslot
from examplanner.scheduling.validation import (
    count_room_conflicts, count_student_clashes, validate_schedule,
)

EXAMS = [
    Exam("e1", "CS101", enrolled_students=("a", "b")),
    Exam("e2", "CS102", enrolled_students=("b", "c")),
    Exam("e3", "CS103", enrolled_students=("d",)),
    Exam("e4", "CS104", enrolled_students=tuple(f"x{i}" for i in range(30))),
]
ROOMS = [Room("r1", "Hall", 20), Room("r2", "Lab", 5)]
SLOTS = [Timeslot("t1", "2024-05-15"), Timeslot("t2", "2024-05-15"),
         Timeslot("t3", "2024-05-18", is_forbidden=True)]


def assign(exam_id, room_id, slot_id, inv_id="i1"):
    return ScheduleAssignment(exam_id, room_id, slot_id, inv_id)


class TestValidateSchedule:
    def test_clean_timetable(self):
        timetable = [assign("e1", "r1", "t1"), assign("e2", "r1", "t2"), assign("e3", "r2", "t1", "i2")]
        report = validate_schedule(timetable, EXAMS, ROOMS, SLOTS)
        assert report.is_valid
        assert (report.student_clashes, report.room_conflicts,
                report.capacity_violations, report.forbidden_slot_violations) == (0, 0, 0, 0)

    def test_counts_each_kind(self):
        timetable = [
            assign("e1", "r1", "t1"),
            assign("e2", "r2", "t1"),   # shares student b with e1
            assign("e3", "r1", "t1"),   # room r1 already used at t1
            assign("e4", "r2", "t3"),   # 30 students in a 5-seat room, forbidden slot
        ]
        report = validate_schedule(timetable, EXAMS, ROOMS, SLOTS)
        assert report.student_clashes == 1
        assert report.room_conflicts == 1
        assert report.capacity_violations == 1
        assert report.forbidden_slot_violations == 1
        assert not report.is_valid

    def test_forbidden_slot_alone_does_not_invalidate(self):
        timetable = [assign("e3", "r1", "t3")]
        report = validate_schedule(timetable, EXAMS, ROOMS, SLOTS)
        assert report.forbidden_slot_violations == 1
        assert report.is_valid

    def test_forbidden_slot_can_gate_validity(self):
        timetable = [assign("e3", "r1", "t3")]
        report = validate_schedule(timetable, EXAMS, ROOMS, SLOTS, forbidden_gates_validity=True)
        assert not report.is_valid

    def test_authoritative_counts_used_for_capacity(self):
        timetable = [assign("e3", "r2", "t1")]
        assert validate_schedule(timetable, EXAMS, ROOMS, SLOTS).capacity_violations == 0
        report = validate_schedule(timetable, EXAMS, ROOMS, SLOTS, student_counts={"e3": 6})
        assert report.capacity_violations == 1

    def test_unknown_references_are_skipped(self):
        timetable = [assign("ghost", "r1", "t1"), assign("e1", "nowhere", "t1"), assign("e2", "r1", "t9")]
        report = validate_schedule(timetable, EXAMS, ROOMS, SLOTS)
        assert report.capacity_violations == 0
        assert report.forbidden_slot_violations == 0
        assert report.student_clashes == 0

    def test_idempotent(self):
        timetable = [assign("e1", "r1", "t1"), assign("e2", "r1", "t1"), assign("e4", "r2", "t3")]
        first = validate_schedule(timetable, EXAMS, ROOMS, SLOTS)
        assert validate_schedule(timetable, EXAMS, ROOMS, SLOTS) == first


@pytest.mark.parametrize("room_uses, expected", [
    (1, 0),
    (2, 1),
    (4, 3),
])
def test_room_conflicts_count_every_extra_booking(room_uses, expected):
    timetable = [assign(f"e{n}", "r1", "t1") for n in range(room_uses)]
    assert count_room_conflicts(timetable) == expected


def test_student_clashes_are_pairwise():
    trio = [
        Exam("p", "P", enrolled_students=("s",)),
        Exam("q", "Q", enrolled_students=("s",)),
        Exam("r", "R", enrolled_students=("s",)),
    ]
    timetable = [assign("p", "r1", "t1"), assign("q", "r2", "t1"), assign("r", "r3", "t1")]
    assert count_student_clashes(timetable, {e.id: e for e in trio}) == 3
