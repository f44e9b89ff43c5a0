"""
Tests for the student registration lookup.
"""

from examplanner.graph_build import (
    StudentRegistry, build_conflict_graph_from_students, collect_registrations,
)
from examplanner.models import Exam, Student


def test_conflict_graph_records_shared_students():
    G = build_conflict_graph_from_students({
        "s1": {"e1", "e2"},
        "s2": {"e1", "e2", "e3"},
        "s3": {"e4"},
    })
    assert set(G.nodes()) == {"e1", "e2", "e3", "e4"}
    assert G["e1"]["e2"]["students"] == {"s1", "s2"}
    assert G["e2"]["e3"]["students"] == {"s2"}
    assert G.degree("e4") == 0


def test_registrations_merge_both_sources():
    exams = [Exam("e1", "A", enrolled_students=("s1",)), Exam("e2", "B", enrolled_students=("s2",))]
    students = [Student("s1", registered_exams=("e2",))]
    assert collect_registrations(exams, students) == {"s1": {"e1", "e2"}, "s2": {"e2"}}


class TestStudentRegistry:
    def test_shared_students_from_exam_enrollment(self):
        exams = [Exam("e1", "A", enrolled_students=("s2", "s1")),
                 Exam("e2", "B", enrolled_students=("s1", "s2", "s3")),
                 Exam("e3", "C", enrolled_students=("s9",))]
        registry = StudentRegistry.build(exams)
        assert registry.shared_students("e1", "e2") == ["s1", "s2"]
        assert registry.shared_students("e2", "e1") == ["s1", "s2"]
        assert registry.shared_students("e1", "e3") == []
        assert registry.shared_students("e1", "e1") == []
        assert registry.shared_students("e1", "unknown") == []

    def test_shared_students_from_student_registrations(self):
        exams = [Exam("e1", "A"), Exam("e2", "B")]
        students = [Student("s1", "ST1", "Ada", ("e1", "e2"))]
        registry = StudentRegistry.build(exams, students)
        assert registry.shared_students("e1", "e2") == ["s1"]
        assert registry.display_name("s1") == "Ada"
        assert registry.display_name("s2") == "s2"

    def test_student_count_prefers_authoritative_value(self):
        exams = [Exam("e1", "A", enrolled_students=("s1", "s2")), Exam("e2", "B", enrolled_students=("s3",))]
        registry = StudentRegistry.build(exams, student_counts={"e1": 85})
        assert registry.student_count(exams[0]) == 85
        assert registry.student_count(exams[1]) == 1

    def test_every_exam_is_a_node(self):
        registry = StudentRegistry.build([Exam("lonely", "L")])
        assert "lonely" in registry.graph
