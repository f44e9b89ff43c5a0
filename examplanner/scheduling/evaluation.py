from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import networkx as nx

from ..models import (
    Invigilator, Room, RosterEntry, RosterSlot, ScheduleAssignment, ScheduleResult, Timeslot,
    ValidationReport,
)


def calculate_metrics(assignments: Sequence[ScheduleAssignment], rooms: Iterable[Room]) -> Tuple[int, float]:
    """(average room utilization in %, population variance of invigilator loads).

    Variance is taken over invigilators holding at least one assignment.
    """
    capacity = {r.id: r.capacity for r in rooms}
    ratios = [a.enrolled_count / capacity[a.room_id] for a in assignments if capacity.get(a.room_id)]
    utilization = round(sum(ratios) / len(assignments) * 100) if assignments else 0

    loads: Dict[str, int] = {}
    for a in assignments:
        loads[a.invigilator_id] = loads.get(a.invigilator_id, 0) + 1
    if not loads:
        return utilization, 0.0
    mean = sum(loads.values()) / len(loads)
    variance = sum((n - mean) ** 2 for n in loads.values()) / len(loads)
    return utilization, round(variance, 2)


def build_invigilator_roster(assignments: Sequence[ScheduleAssignment],
                             invigilators: Iterable[Invigilator]) -> Tuple[RosterEntry, ...]:
    roster: List[RosterEntry] = []
    for inv in invigilators:
        slots = tuple(RosterSlot(a.exam_id, a.timeslot_id, a.room_id)
                      for a in assignments if a.invigilator_id == inv.id)
        roster.append(RosterEntry(inv.id, slots, len(slots), inv.max_load))
    return tuple(roster)


def _greedy_clique_lb(G: nx.Graph) -> int:
    """Fast lower bound on the number of timeslots via a greedy maximal clique.

    Exams in a clique pairwise share students, so each needs its own timeslot.
    Picks the highest-degree node, then greedily grows a clique by repeatedly
    adding a node adjacent to all current clique members.
    """
    if G.number_of_nodes() == 0:
        return 0
    seed = max(sorted(G.nodes()), key=lambda u: G.degree(u))
    clique = {seed}
    candidates = set(G.neighbors(seed))
    while candidates:
        u = max(sorted(candidates), key=lambda v: G.degree(v))
        new_cands = {v for v in candidates if all(G.has_edge(v, w) for w in clique)}
        if u in new_cands:
            clique.add(u)
            candidates = new_cands.intersection(G.neighbors(u))
        else:
            candidates.remove(u)
    return len(clique)


def summary(G: nx.Graph, result: ScheduleResult, timeslots: Sequence[Timeslot],
            report: Optional[ValidationReport] = None, avoid_forbidden: bool = True) -> str:
    """Plain-text run report."""
    m = result.metrics
    usable = [t for t in timeslots if not (avoid_forbidden and t.is_forbidden)]
    lb = _greedy_clique_lb(G)
    used_slots = len({a.timeslot_id for a in result.timetable})
    rejects: Dict[str, int] = {}
    for c in result.conflicts:
        rejects[c.constraint.value] = rejects.get(c.constraint.value, 0) + 1
    lines = [
        f"Status: {'SUCCESS' if result.success else 'FAILED'}",
        f"Exams scheduled: {len(result.timetable)}  Student overlaps: {G.number_of_edges()}",
        f"Timeslots usable: {len(usable)}  Used: {used_slots}  Clique lower bound: {lb}",
        f"States explored: {m.states_explored}  Backtracks: {m.backtracks}  Time: {m.total_time:.1f}ms",
        f"Room utilization: {m.average_room_utilization}%  Invigilator load variance: {m.invigilator_load_variance}",
    ]
    if rejects:
        lines.append("Rejections: " + ", ".join(f"{k}={v}" for k, v in sorted(rejects.items())))
    if report is not None:
        lines.append(
            f"Valid: {report.is_valid}  (student clashes={report.student_clashes}, "
            f"room conflicts={report.room_conflicts}, capacity={report.capacity_violations}, "
            f"forbidden={report.forbidden_slot_violations})"
        )
    if len(usable) < lb:
        lines.append(f"Warning: usable timeslots={len(usable)} < clique LB={lb}; a clash-free timetable is impossible.")
    return "\n".join(lines) + "\n"
