"""
Pytest configuration and fixtures for examplanner tests.
"""

import logging

import pytest

import format_data
from examplanner.models import (
    Exam, Invigilator, InvigilatorAvailability, Room, RoomAvailability,
    SchedulerSettings, Student, Timeslot,
)

# Configure logging for tests
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


@pytest.fixture
def settings():
    return SchedulerSettings()


@pytest.fixture
def demo():
    """The demo exam period as model objects, plus scaled student counts."""
    students = [Student(sid, code, name, tuple(exams)) for sid, code, name, exams in format_data.STUDENTS]
    exams = [
        Exam(eid, code, name, duration,
             tuple(s.id for s in students if eid in s.registered_exams))
        for eid, code, name, duration, _ in format_data.EXAMS
    ]
    counts = {eid: count for eid, _, _, _, count in format_data.EXAMS}
    rooms = [Room(rid, name, cap, building, RoomAvailability(avail))
             for rid, name, cap, building, avail in format_data.ROOMS]
    invigilators = [Invigilator(iid, name, InvigilatorAvailability(avail), 0, max_load)
                    for iid, name, avail, max_load in format_data.INVIGILATORS]
    timeslots = [Timeslot(*row) for row in format_data.TIMESLOTS]
    return {
        "exams": exams,
        "rooms": rooms,
        "timeslots": timeslots,
        "invigilators": invigilators,
        "students": students,
        "student_counts": counts,
    }
