"""
Local search: randomized pairwise swaps between teams.

Each candidate swap is scored with ``move_score`` (lower is better) and only
applied when the combined score beats the acceptance threshold.
"""

import itertools
import random
from typing import List, Sequence

from .assignment import AssignmentManager
from .config import AllocationSettings
from .conflicts import find_conflict
from .criteria import QuotaConfig, exceeds_upper_limit
from .models import Student, Team


def move_score(student: Student, source: Sequence[Student], target: Sequence[Student],
               subjects: Sequence[str], quota: QuotaConfig, average_size: float,
               settings: AllocationSettings) -> float:
    """
    Score moving ``student`` from the ``source`` members to the ``target`` members.

    Negative values are improvements: team sizes closer to ``average_size``,
    minimums reached in the target, upper limits relieved in the source.
    """
    source_before, target_before = len(source), len(target)
    source_after, target_after = source_before - 1, target_before + 1
    penalty_before = abs(source_before - average_size) + abs(target_before - average_size)
    penalty_after = abs(source_after - average_size) + abs(target_after - average_size)
    score = penalty_after - penalty_before

    for subject in subjects:
        if not student.takes(subject):
            continue
        minimum = quota.minimum(subject)
        upper = quota.upper_limit(subject)
        src_before = sum(1 for s in source if s.takes(subject))
        tgt_before = sum(1 for s in target if s.takes(subject))
        src_after, tgt_after = src_before - 1, tgt_before + 1

        if src_before >= minimum and src_after < minimum:
            score += settings.below_minimum_penalty
        if src_before > upper and src_after <= upper:
            score -= settings.limit_resolved_reward
        if tgt_before < minimum and tgt_after >= minimum:
            score -= settings.minimum_reached_reward
        if tgt_before >= minimum and tgt_after > upper:
            score += settings.over_limit_penalty
    return score


def _can_move(student: Student, target: Team, manager: AssignmentManager,
              quota: QuotaConfig) -> bool:
    if find_conflict(student, target, manager.store) is not None:
        return False
    return not exceeds_upper_limit(student, target, manager.subjects, quota)


def swap_score(student_a: Student, team_a: Team, student_b: Student, team_b: Team,
               subjects: Sequence[str], quota: QuotaConfig, average_size: float,
               settings: AllocationSettings) -> float:
    """Combined score of exchanging ``student_a`` (in A) with ``student_b`` (in B)."""
    a_without = [s for s in team_a.students if s.id != student_a.id]
    b_without = [s for s in team_b.students if s.id != student_b.id]
    return (move_score(student_a, team_a.students, b_without, subjects, quota, average_size, settings)
            + move_score(student_b, team_b.students, a_without, subjects, quota, average_size, settings))


def _find_swap(team_a: Team, team_b: Team, manager: AssignmentManager, quota: QuotaConfig,
               average_size: float, settings: AllocationSettings):
    for student_a in list(team_a.students):
        if not _can_move(student_a, team_b, manager, quota):
            continue
        for student_b in list(team_b.students):
            if not _can_move(student_b, team_a, manager, quota):
                continue
            score = swap_score(student_a, team_a, student_b, team_b, manager.subjects,
                               quota, average_size, settings)
            if score < settings.acceptance_threshold:
                return student_a, student_b
    return None


def local_search(teams: List[Team], manager: AssignmentManager, quota: QuotaConfig,
                 average_size: float, rng: random.Random,
                 settings: AllocationSettings) -> int:
    """
    Improve the allocation with pairwise swaps.

    Every pass visits all team pairs in random order and applies the first
    acceptable swap, then starts over; a pass without a swap ends the search.

    Returns:
        Number of swaps performed.
    """
    swaps = 0
    for _ in range(settings.max_iterations):
        pairs = list(itertools.combinations(teams, 2))
        rng.shuffle(pairs)

        swapped = False
        for team_a, team_b in pairs:
            if not team_a.students or not team_b.students:
                continue
            found = _find_swap(team_a, team_b, manager, quota, average_size, settings)
            if found is None:
                continue
            student_a, student_b = found
            manager.remove(student_a, team_a)
            manager.remove(student_b, team_b)
            manager.assign(student_a, team_b)
            manager.assign(student_b, team_a)
            swaps += 1
            swapped = True
            break
        if not swapped:
            break
    return swaps
