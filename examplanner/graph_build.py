from typing import Dict, Iterable, List, Mapping, Optional, Set
import networkx as nx

from .models import Exam, Student


def build_conflict_graph_from_students(registrations: Dict[str, Set[str]]) -> nx.Graph:
    """Exam overlap graph from student -> exams registrations.

    Each edge carries the set of shared student ids in its ``students`` attribute.
    """
    G = nx.Graph()
    for sid, exams in registrations.items():
        exams = sorted(exams)
        for ex in exams:
            G.add_node(ex)
        for i in range(len(exams)):
            for j in range(i + 1, len(exams)):
                u, v = exams[i], exams[j]
                if u == v:
                    continue
                if G.has_edge(u, v):
                    G[u][v]['students'].add(sid)
                else:
                    G.add_edge(u, v, students={sid})
    return G


def collect_registrations(exams: Iterable[Exam], students: Optional[Iterable[Student]] = None) -> Dict[str, Set[str]]:
    """Merge both enrollment sources into student id -> exam ids."""
    registrations: Dict[str, Set[str]] = {}
    for ex in exams:
        for sid in ex.enrolled_students:
            registrations.setdefault(sid, set()).add(ex.id)
    for st in students or ():
        registrations.setdefault(st.id, set()).update(st.registered_exams)
    return registrations


class StudentRegistry:
    """Read-only student registration lookup used by the scheduler.

    Answers two questions: which students sit both of two exams, and how many
    students sit an exam. ``student_counts`` holds authoritative counts (for
    example a scaled dataset) which win over the length of the enrolled list.
    """

    def __init__(self, graph: nx.Graph, student_counts: Optional[Mapping[str, int]] = None,
                 student_names: Optional[Mapping[str, str]] = None):
        self.graph = graph
        self.student_counts = dict(student_counts or {})
        self.student_names = dict(student_names or {})

    @classmethod
    def build(cls, exams: Iterable[Exam], students: Optional[Iterable[Student]] = None,
              student_counts: Optional[Mapping[str, int]] = None) -> 'StudentRegistry':
        exams = list(exams)
        students = list(students or ())
        G = build_conflict_graph_from_students(collect_registrations(exams, students))
        for ex in exams:
            G.add_node(ex.id)
        names = {st.id: st.name for st in students if st.name}
        return cls(G, student_counts=student_counts, student_names=names)

    def shared_students(self, exam_a: str, exam_b: str) -> List[str]:
        if exam_a == exam_b or not self.graph.has_edge(exam_a, exam_b):
            return []
        return sorted(self.graph[exam_a][exam_b]['students'])

    def student_count(self, exam: Exam) -> int:
        count = self.student_counts.get(exam.id)
        if count is None:
            return len(exam.enrolled_students)
        return count

    def display_name(self, student_id: str) -> str:
        return self.student_names.get(student_id, student_id)
