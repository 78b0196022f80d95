"""
Feasibility and ordering planner.

Works out how many teams can satisfy every criterion's minimum and in which
order criteria are seeded (scarcest first).
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from .criteria import QuotaConfig, sort_by_scarcity, students_for_subject
from .models import Student


@dataclass(frozen=True)
class AllocationPlan:
    effective_team_count: int
    ordered_subjects: List[str]
    bottleneck: Optional[str] = None
    max_feasible_teams: int = 0
    critical_message: Optional[str] = None

    @property
    def feasible(self) -> bool:
        return self.effective_team_count > 0 and self.critical_message is None


def infeasibility_message(subject: str, available: int, minimum: int) -> Optional[str]:
    """Message for a criterion that no team count can satisfy, or None."""
    if available == 0 and minimum > 0:
        return (f"No students are enrolled in '{subject}', which requires at least "
                f"{minimum} per team. No teams can be formed.")
    if 0 < available < minimum:
        return (f"Only {available} student(s) take '{subject}', fewer than the required "
                f"minimum of {minimum} for a single team.")
    return None


def plan_allocation(students: Sequence[Student], subjects: Sequence[str],
                    requested_team_count: int, quota: QuotaConfig) -> AllocationPlan:
    """
    Compute the effective number of teams and the seeding order.

    Args:
        students: Full roster; only students taking a criterion are counted for it
        subjects: Selected criteria
        requested_team_count: Number of teams the user asked for
        quota: Minimum configuration

    Returns:
        AllocationPlan; ``critical_message`` is set whenever no team can be formed.
    """
    subjects = list(subjects)
    if not subjects:
        return AllocationPlan(0, [], critical_message="No criteria were selected for the allocation.")
    if not students:
        return AllocationPlan(0, subjects, critical_message="There are no students to allocate.")
    if requested_team_count <= 0:
        return AllocationPlan(0, subjects, critical_message=(
            f"The number of teams must be at least 1 (got {requested_team_count})."))

    max_teams = requested_team_count
    bottleneck = None
    for subject in subjects:
        available = len(students_for_subject(subject, students))
        minimum = quota.minimum(subject)

        message = infeasibility_message(subject, available, minimum)
        if message:
            return AllocationPlan(0, subjects, bottleneck=subject, critical_message=message)

        # minimum is clamped to >= 1, so every criterion bounds the team count
        teams_for_subject = available // minimum
        if teams_for_subject < max_teams:
            max_teams = teams_for_subject
            bottleneck = subject

    effective = max(0, min(requested_team_count, max_teams))
    if effective < 1:
        return AllocationPlan(0, subjects, bottleneck=bottleneck, max_feasible_teams=max_teams,
                              critical_message=(
                                  f"No team can meet every minimum with the available students; "
                                  f"'{bottleneck}' limits the allocation to {max_teams} team(s)."))

    return AllocationPlan(
        effective_team_count=effective,
        ordered_subjects=sort_by_scarcity(subjects, list(students)),
        bottleneck=bottleneck,
        max_feasible_teams=max_teams,
    )
