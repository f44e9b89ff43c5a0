from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class RoomAvailability(str, Enum):
    AVAILABLE = "Available"
    IN_USE = "In Use"
    MAINTENANCE = "Maintenance"


class InvigilatorAvailability(str, Enum):
    AVAILABLE = "Available"
    LIMITED = "Limited"
    UNAVAILABLE = "Unavailable"


class ConstraintKind(str, Enum):
    ROOM_CAPACITY = "ROOM_CAPACITY"
    DOUBLE_BOOKING = "DOUBLE_BOOKING"
    STUDENT_CLASH = "STUDENT_CLASH"
    FORBIDDEN_SLOT = "FORBIDDEN_SLOT"
    INVIGILATOR_LOAD = "INVIGILATOR_LOAD"


class TraceAction(str, Enum):
    TRY = "TRY"
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    BACKTRACK = "BACKTRACK"
    DONE = "DONE"


# ---------------------------------------------------------------------
# Entities (read-only snapshot for one scheduling run)
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class Exam:
    id: str
    code: str
    name: str = ""
    duration: float = 2.0  # hours
    enrolled_students: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    capacity: int
    building: str = ""
    availability: RoomAvailability = RoomAvailability.AVAILABLE


@dataclass(frozen=True)
class Invigilator:
    id: str
    name: str
    availability: InvigilatorAvailability = InvigilatorAvailability.AVAILABLE
    daily_load: int = 0  # simulated load while searching
    max_load: int = 3


@dataclass(frozen=True)
class Timeslot:
    id: str
    date: str  # YYYY-MM-DD
    start_time: str = ""  # HH:MM
    end_time: str = ""
    label: str = ""
    is_forbidden: bool = False


@dataclass(frozen=True)
class Student:
    id: str
    student_id: str = ""
    name: str = ""
    registered_exams: Tuple[str, ...] = ()


# ---------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class SchedulerSettings:
    avoid_forbidden_timeslots: bool = True
    balance_invigilator_load: bool = True
    minimize_room_wastage: bool = True
    # False: max_load caps the whole run. True: max_load caps each calendar date.
    per_day_invigilator_load: bool = False


@dataclass(frozen=True)
class LockConstraints:
    """Guided-scheduling restrictions. Empty tuples mean "no restriction"."""
    room_ids: Tuple[str, ...] = ()
    dates: Tuple[str, ...] = ()
    timeslot_ids: Tuple[str, ...] = ()
    invigilator_ids: Tuple[str, ...] = ()
    priority_exam_ids: Tuple[str, ...] = ()


# ---------------------------------------------------------------------
# Search products
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ScheduleAssignment:
    exam_id: str
    room_id: str
    timeslot_id: str
    invigilator_id: str
    enrolled_count: int = 0
    reason: str = ""


@dataclass(frozen=True)
class CandidateRef:
    room_id: str
    timeslot_id: str
    invigilator_id: str


@dataclass(frozen=True)
class CheckResult:
    ok: bool
    constraint: ConstraintKind
    detail: str


@dataclass(frozen=True)
class ConstraintViolation:
    constraint: ConstraintKind
    message: str
    exam_id: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TraceEntry:
    step: int
    action: TraceAction
    exam_id: str
    candidate: Optional[CandidateRef] = None
    checks: Tuple[CheckResult, ...] = ()
    note: str = ""


@dataclass(frozen=True)
class ConflictRecord:
    step: int
    exam_id: str
    attempted: Optional[CandidateRef]
    constraint: ConstraintKind
    message: str


@dataclass(frozen=True)
class SearchStats:
    states_explored: int
    backtracks: int
    start_time: float  # perf_counter seconds
    end_time: float
    cancelled: bool = False


@dataclass(frozen=True)
class SearchResult:
    success: bool
    assignments: Tuple[ScheduleAssignment, ...]
    trace: Tuple[TraceEntry, ...]
    conflicts: Tuple[ConflictRecord, ...]
    stats: SearchStats


# ---------------------------------------------------------------------
# Agent output
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RosterSlot:
    exam_id: str
    timeslot_id: str
    room_id: str


@dataclass(frozen=True)
class RosterEntry:
    invigilator_id: str
    assignments: Tuple[RosterSlot, ...]
    total: int
    max_per_day: int


@dataclass(frozen=True)
class ScheduleMetrics:
    total_time: float  # milliseconds
    states_explored: int
    backtracks: int
    average_room_utilization: int  # percent
    invigilator_load_variance: float


@dataclass(frozen=True)
class ScheduleResult:
    success: bool
    timetable: Tuple[ScheduleAssignment, ...]
    invigilator_roster: Tuple[RosterEntry, ...]
    conflicts: Tuple[ConflictRecord, ...]
    trace: Tuple[TraceEntry, ...]
    metrics: ScheduleMetrics


@dataclass(frozen=True)
class ValidationReport:
    student_clashes: int
    room_conflicts: int
    capacity_violations: int
    forbidden_slot_violations: int
    is_valid: bool
