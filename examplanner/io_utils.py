import csv
import io
import os
from typing import Dict, IO, Iterable, List, Tuple, Union

from .models import (
    Exam, Invigilator, InvigilatorAvailability, Room, RoomAvailability,
    RosterEntry, ScheduleAssignment, Student, Timeslot, TraceEntry,
)

TextOrPath = Union[str, os.PathLike, IO]

TRUE_VALUES = {'1', 'true', 'yes', 'y'}


def _open_text(src: TextOrPath):
    """Return a text-mode file handle and a flag indicating whether to close it.

    Accepts a filesystem path, a text IO object, or a BytesIO buffer.
    Ensures CSV readers get strings, not bytes.
    """
    if isinstance(src, (str, os.PathLike)):
        f = open(src, 'r', newline='')
        return f, True
    if isinstance(src, io.BytesIO):
        src.seek(0)
        f = io.TextIOWrapper(src, encoding='utf-8', newline='')
        return f, True
    if hasattr(src, 'read'):
        if hasattr(src, 'seek'):
            src.seek(0)
        return src, False
    raise TypeError("Unsupported input type; expected path or file-like object")


def _read_rows(src: TextOrPath) -> List[Dict[str, str]]:
    f, should_close = _open_text(src)
    try:
        return [{k.strip(): (v or '').strip() for k, v in row.items() if k} for row in csv.DictReader(f)]
    finally:
        if should_close:
            f.close()


def _split_ids(value: str) -> Tuple[str, ...]:
    return tuple(s.strip() for s in value.replace(',', ';').split(';') if s.strip())


def _flag(value: str) -> bool:
    return value.strip().lower() in TRUE_VALUES


def _enum(kind, value: str, default):
    if not value:
        return default
    for member in kind:
        if value.lower() in (member.value.lower(), member.name.lower()):
            return member
    raise ValueError(f"Unknown {kind.__name__} value: {value!r}")


def load_exams(src: TextOrPath) -> Tuple[List[Exam], Dict[str, int]]:
    """CSV id,code,name,duration,students[,student_count].

    ``students`` is a ';'-separated id list. Returns the exams and the
    authoritative student counts for rows that set ``student_count``.
    """
    exams: List[Exam] = []
    counts: Dict[str, int] = {}
    for n, row in enumerate(_read_rows(src), start=2):
        try:
            eid = row['id']
            exams.append(Exam(
                id=eid,
                code=row.get('code') or eid,
                name=row.get('name', ''),
                duration=float(row.get('duration') or 2),
                enrolled_students=_split_ids(row.get('students', '')),
            ))
            if row.get('student_count'):
                counts[eid] = int(row['student_count'])
        except (KeyError, ValueError) as exc:
            raise ValueError(f"exams CSV line {n}: {exc}") from exc
    return exams, counts


def load_rooms(src: TextOrPath) -> List[Room]:
    rooms: List[Room] = []
    for n, row in enumerate(_read_rows(src), start=2):
        try:
            rid = row['id']
            rooms.append(Room(
                id=rid,
                name=row.get('name') or rid,
                capacity=int(row['capacity']),
                building=row.get('building', ''),
                availability=_enum(RoomAvailability, row.get('availability', ''), RoomAvailability.AVAILABLE),
            ))
        except (KeyError, ValueError) as exc:
            raise ValueError(f"rooms CSV line {n}: {exc}") from exc
    return rooms


def load_timeslots(src: TextOrPath) -> List[Timeslot]:
    timeslots: List[Timeslot] = []
    for n, row in enumerate(_read_rows(src), start=2):
        try:
            timeslots.append(Timeslot(
                id=row['id'],
                date=row['date'],
                start_time=row.get('start_time', ''),
                end_time=row.get('end_time', ''),
                label=row.get('label', ''),
                is_forbidden=_flag(row.get('is_forbidden', '')),
            ))
        except KeyError as exc:
            raise ValueError(f"timeslots CSV line {n}: missing column {exc}") from exc
    return timeslots


def load_invigilators(src: TextOrPath) -> List[Invigilator]:
    invigilators: List[Invigilator] = []
    for n, row in enumerate(_read_rows(src), start=2):
        try:
            iid = row['id']
            invigilators.append(Invigilator(
                id=iid,
                name=row.get('name') or iid,
                availability=_enum(InvigilatorAvailability, row.get('availability', ''),
                                   InvigilatorAvailability.AVAILABLE),
                max_load=int(row.get('max_load') or 3),
            ))
        except (KeyError, ValueError) as exc:
            raise ValueError(f"invigilators CSV line {n}: {exc}") from exc
    return invigilators


def load_students(src: TextOrPath) -> List[Student]:
    """CSV id,student_id,name,exams with ';'-separated exam ids."""
    students: List[Student] = []
    for n, row in enumerate(_read_rows(src), start=2):
        try:
            students.append(Student(
                id=row['id'],
                student_id=row.get('student_id', ''),
                name=row.get('name', ''),
                registered_exams=_split_ids(row.get('exams', '')),
            ))
        except KeyError as exc:
            raise ValueError(f"students CSV line {n}: missing column {exc}") from exc
    return students


def load_timetable(src: TextOrPath) -> List[ScheduleAssignment]:
    timetable: List[ScheduleAssignment] = []
    for n, row in enumerate(_read_rows(src), start=2):
        try:
            timetable.append(ScheduleAssignment(
                exam_id=row['exam_id'],
                room_id=row['room_id'],
                timeslot_id=row['timeslot_id'],
                invigilator_id=row.get('invigilator_id', ''),
                enrolled_count=int(row.get('enrolled_count') or 0),
                reason=row.get('reason', ''),
            ))
        except (KeyError, ValueError) as exc:
            raise ValueError(f"timetable CSV line {n}: {exc}") from exc
    return timetable


def save_timetable_csv(path: str, timetable: Iterable[ScheduleAssignment]):
    with open(path, 'w', newline='') as f:
        w = csv.writer(f)
        w.writerow(['exam_id', 'room_id', 'timeslot_id', 'invigilator_id', 'enrolled_count', 'reason'])
        for a in timetable:
            w.writerow([a.exam_id, a.room_id, a.timeslot_id, a.invigilator_id, a.enrolled_count, a.reason])


def save_roster_csv(path: str, roster: Iterable[RosterEntry]):
    with open(path, 'w', newline='') as f:
        w = csv.writer(f)
        w.writerow(['invigilator_id', 'exam_id', 'timeslot_id', 'room_id', 'total', 'max_per_day'])
        for entry in roster:
            if not entry.assignments:
                w.writerow([entry.invigilator_id, '', '', '', entry.total, entry.max_per_day])
            for slot in entry.assignments:
                w.writerow([entry.invigilator_id, slot.exam_id, slot.timeslot_id, slot.room_id,
                            entry.total, entry.max_per_day])


def save_trace_csv(path: str, trace: Iterable[TraceEntry]):
    with open(path, 'w', newline='') as f:
        w = csv.writer(f)
        w.writerow(['step', 'action', 'exam_id', 'room_id', 'timeslot_id', 'invigilator_id', 'note'])
        for t in trace:
            c = t.candidate
            w.writerow([t.step, t.action.value, t.exam_id,
                        c.room_id if c else '', c.timeslot_id if c else '', c.invigilator_id if c else '',
                        t.note])
