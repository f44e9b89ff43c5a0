#!/usr/bin/env python3
"""
Demo Dataset Builder for ExamPlanner
====================================
Writes a small exam period (6 exams, 6 rooms, 8 students,
6 invigilators, 10 timeslots) as CSVs that main.py can load.

Outputs (data/demo/ by default):
  - exams.csv          (with scaled student_count per exam)
  - rooms.csv
  - students.csv
  - invigilators.csv
  - timeslots.csv
  - summary.txt
"""

import os
import sys
import pandas as pd

# -----------------------------
# CONFIGURATION
# -----------------------------
OUTPUT_PATH = os.path.join("data", "demo")

EXAMS = [
    # id, code, name, duration (hours), scaled student count
    ("exam-1", "CS401", "Database Systems", 3, 85),
    ("exam-2", "CS302", "Operating Systems", 2.5, 92),
    ("exam-3", "MA201", "Discrete Mathematics", 2, 78),
    ("exam-4", "CS205", "Data Structures", 3, 110),
    ("exam-5", "EE301", "Digital Electronics", 2, 64),
    ("exam-6", "CS501", "Artificial Intelligence", 3, 57),
]

ROOMS = [
    ("room-1", "Hall A", 120, "Main Building", "Available"),
    ("room-2", "Hall B", 100, "Main Building", "Available"),
    ("room-3", "Lab 201", 40, "Engineering Block", "Available"),
    ("room-4", "Auditorium", 250, "Central Block", "Available"),
    ("room-5", "Room 305", 60, "Science Block", "In Use"),
    ("room-6", "Lab 102", 35, "Computer Center", "Available"),
]

STUDENTS = [
    ("st-1", "ST2024001", "Ahmed Hassan", ["exam-1", "exam-2", "exam-3"]),
    ("st-2", "ST2024002", "Fatima Ali", ["exam-4", "exam-5", "exam-3"]),
    ("st-3", "ST2024003", "Omar Ibrahim", ["exam-1", "exam-4", "exam-6"]),
    ("st-4", "ST2024004", "Layla Mohammed", ["exam-2", "exam-5"]),
    ("st-5", "ST2024005", "Khaled Youssef", ["exam-1", "exam-2", "exam-4"]),
    ("st-6", "ST2024006", "Maryam Nasser", ["exam-3", "exam-6"]),
    ("st-7", "ST2024007", "Abdullah Salem", ["exam-1", "exam-5", "exam-6"]),
    ("st-8", "ST2024008", "Sara Khalil", ["exam-4", "exam-2"]),
]

INVIGILATORS = [
    ("inv-1", "Dr. Sarah Ahmed", "Available", 3),
    ("inv-2", "Prof. Mohammed Ali", "Available", 2),
    ("inv-3", "Dr. Nadia Ibrahim", "Limited", 3),
    ("inv-4", "Dr. Khaled Hassan", "Available", 3),
    ("inv-5", "Prof. Layla Youssef", "Available", 4),
    ("inv-6", "Dr. Omar Nasser", "Unavailable", 2),
]

TIMESLOTS = [
    # id, date, start, end, label, forbidden
    ("ts-1", "2024-05-15", "09:00", "12:00", "Morning", False),
    ("ts-2", "2024-05-15", "14:00", "17:00", "Afternoon", False),
    ("ts-3", "2024-05-16", "09:00", "12:00", "Morning", False),
    ("ts-4", "2024-05-16", "14:00", "17:00", "Afternoon", False),
    ("ts-5", "2024-05-17", "09:00", "12:00", "Morning", False),
    ("ts-6", "2024-05-17", "14:00", "17:00", "Afternoon", True),   # university event
    ("ts-7", "2024-05-18", "09:00", "12:00", "Morning", True),     # weekend
    ("ts-8", "2024-05-19", "09:00", "12:00", "Morning", True),     # weekend
    ("ts-9", "2024-05-20", "09:00", "12:00", "Morning", False),
    ("ts-10", "2024-05-20", "14:00", "17:00", "Afternoon", False),
]


# -----------------------------
# BUILDERS
# -----------------------------
def build_frames():
    """Return a dict of file name -> DataFrame for the demo dataset."""
    students = pd.DataFrame(STUDENTS, columns=["id", "student_id", "name", "exam_list"])

    # Enrollment is derived from student registrations
    enrollment = students.explode("exam_list").groupby("exam_list")["id"].apply(lambda s: ";".join(s))

    exams = pd.DataFrame(EXAMS, columns=["id", "code", "name", "duration", "student_count"])
    exams["students"] = exams["id"].map(enrollment).fillna("")
    exams = exams[["id", "code", "name", "duration", "students", "student_count"]]

    students["exams"] = students["exam_list"].apply(";".join)
    students = students.drop(columns=["exam_list"])

    rooms = pd.DataFrame(ROOMS, columns=["id", "name", "capacity", "building", "availability"])
    invigilators = pd.DataFrame(INVIGILATORS, columns=["id", "name", "availability", "max_load"])
    timeslots = pd.DataFrame(TIMESLOTS, columns=["id", "date", "start_time", "end_time", "label", "is_forbidden"])

    return {
        "exams.csv": exams,
        "rooms.csv": rooms,
        "students.csv": students,
        "invigilators.csv": invigilators,
        "timeslots.csv": timeslots,
    }


def write_dataset(out_path=OUTPUT_PATH):
    os.makedirs(out_path, exist_ok=True)
    frames = build_frames()
    for name, df in frames.items():
        df.to_csv(os.path.join(out_path, name), index=False)
        print(f"💾 {name} saved ({len(df)} rows)")

    timeslots = frames["timeslots.csv"]
    summary = f"""
ExamPlanner Demo Dataset 🎓
---------------------------
Exams:        {len(frames['exams.csv'])}
Rooms:        {len(frames['rooms.csv'])}
Students:     {len(frames['students.csv'])}
Invigilators: {len(frames['invigilators.csv'])}
Timeslots:    {len(timeslots)} ({int(timeslots['is_forbidden'].sum())} forbidden)
Output Path:  {os.path.abspath(out_path)}
"""
    with open(os.path.join(out_path, "summary.txt"), "w") as f:
        f.write(summary)
    print(summary)
    return frames


if __name__ == "__main__":
    write_dataset(sys.argv[1] if len(sys.argv) > 1 else OUTPUT_PATH)
