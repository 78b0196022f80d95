"""
Warning synthesis for finished allocations.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .criteria import QuotaConfig, count_with_subject, groups_in_team
from .models import AssignmentWarning, Student, StudentId, SubjectGroup, Team


def warning_sort_key(warning: AssignmentWarning):
    """Critical first, then team id (team-less last), then criterion name."""
    return (
        0 if warning.is_critical else 1,
        1 if warning.team is None else 0,
        warning.team or 0,
        warning.criterion,
    )


def sort_warnings(warnings: Iterable[AssignmentWarning]) -> Tuple[AssignmentWarning, ...]:
    return tuple(sorted(warnings, key=warning_sort_key))


class WarningCollector:
    """Accumulates warnings during one run and hands them out once, sorted."""

    def __init__(self):
        self._warnings: List[AssignmentWarning] = []
        self._frozen: Optional[Tuple[AssignmentWarning, ...]] = None

    def add(self, message: str, critical: bool = False, **context) -> AssignmentWarning:
        if self._frozen is not None:
            raise RuntimeError("warnings were already built for this run")
        warning = AssignmentWarning(message=message, is_critical=critical, **context)
        self._warnings.append(warning)
        return warning

    def has_critical(self) -> bool:
        return any(w.is_critical for w in self._warnings)

    def infeasible(self, message: str, subject: Optional[str] = None):
        self.add(message, critical=True, subject=subject)

    def team_shortfall(self, formed: int, planned: int, requested: int,
                       bottleneck: Optional[str] = None):
        if planned < requested:
            self.add(
                f"Only {planned} of the {requested} requested teams can meet every minimum"
                + (f" (limited by '{bottleneck}')." if bottleneck else "."),
                subject=bottleneck,
            )
        if formed == 0 and planned > 0:
            if not self.has_critical():
                self.add("No teams could be formed. Group conflicts or too few students for "
                         "the selected criteria and minimums may be the cause.", critical=True)
        elif formed < planned:
            self.add(f"{formed} teams were formed instead of the {planned} planned; some teams "
                     f"could not keep any member.")

    def unassigned(self, students: Sequence[Student]):
        if not students:
            return
        listing = ', '.join(f"({s.id}) {s.name}" for s in students)
        self.add(f"{len(students)} student(s) could not be assigned: {listing}.", critical=True)

    def blocked_by_conflict(self, blocked: Dict[StudentId, SubjectGroup]):
        """One critical warning per subject and group whose students found no team."""
        grouped: Dict[SubjectGroup, int] = defaultdict(int)
        for sg in blocked.values():
            grouped[sg] += 1
        for sg, count in grouped.items():
            self.add(
                f"{count} student(s) of group '{sg.group}' in '{sg.subject}' could not join any "
                f"team without mixing groups.",
                critical=True, subject=sg.subject, group=sg.group,
            )

    def team_compliance(self, teams: Iterable[Team], subjects: Sequence[str], quota: QuotaConfig):
        for team in teams:
            for subject in subjects:
                count = count_with_subject(team, subject)
                minimum = quota.minimum(subject)
                if count == 0:
                    self.add(f"Team {team.id}: has no students for '{subject}'. "
                             f"Required minimum: {minimum}.",
                             critical=True, team=team.id, subject=subject)
                elif count < minimum:
                    self.add(f"Team {team.id}: has {count}/{minimum} students for '{subject}'.",
                             team=team.id, subject=subject)

                groups = groups_in_team(team, subject)
                if len(groups) > 1:
                    self.add(f"Team {team.id}: mixes groups {', '.join(sorted(groups))} "
                             f"for '{subject}'.",
                             critical=True, team=team.id, subject=subject)

    def build(self) -> Tuple[AssignmentWarning, ...]:
        if self._frozen is None:
            self._frozen = sort_warnings(self._warnings)
        return self._frozen
