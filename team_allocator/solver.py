"""
Team Allocation Engine
======================

Assigns a roster of students to a bounded number of teams so that every team
meets per-criterion minimums (students per subject, or per role covered by a
set of subjects) while keeping group consistency.

Hard rule (never broken by the engine):
1. Students sharing a team belong to the same group for every subject they
   both take.

Soft objectives (best effort, reported as warnings when missed):
1. Every team reaches the configured minimum for every criterion
2. No criterion goes above its upper limit (minimum + 1) in a team
3. Team sizes stay close to the average
4. Every relevant student is placed

Pipeline:
    planner -> phase 1 (minimums) -> phase 2 (remaining students)
    -> local search (swaps) -> final balancing -> warnings

Role mode wraps the same pipeline through the role adapter.
"""

import random
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Set, Union

from .assignment import AssignmentManager
from .balancing import final_balancing
from .config import DEFAULT_SETTINGS, AllocationSettings
from .conflicts import find_conflict, place_student
from .criteria import QuotaConfig, count_with_subject, exceeds_upper_limit
from .models import (AllocationResult, Criterion, MinStudentMode, Role, Student, StudentId,
                     SubjectGroup, Team)
from .optimization import local_search
from .planner import plan_allocation
from .report import WarningCollector
from .roles import restore_roles, roles_to_virtual_subjects, virtual_quota


class TeamAllocator:
    """
    Heuristic team allocator.

    Args:
        settings: Tuning constants (defaults documented in ``AllocationSettings``)
        verbose: Whether to print progress messages
        seed: Seed for the swap shuffling; ignored when ``rng`` is given
        rng: Random source to use (for reproducible runs)
    """

    def __init__(self, settings: Optional[AllocationSettings] = None, verbose: bool = True,
                 seed: Optional[int] = None, rng: Optional[random.Random] = None):
        self.settings = settings or DEFAULT_SETTINGS
        self.verbose = verbose
        self.rng = rng if rng is not None else random.Random(seed)

    def log(self, message: str):
        """Print a log message if verbose mode is enabled."""
        if self.verbose:
            timestamp = datetime.now().strftime("%H:%M:%S")
            print(f"[{timestamp}] {message}")

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def allocate(self,
                 students: Sequence[Student],
                 criteria: Sequence[Criterion],
                 requested_team_count: int,
                 min_mode: Union[MinStudentMode, str] = MinStudentMode.GLOBAL,
                 global_min: int = 1,
                 individual_mins: Optional[Mapping[str, int]] = None) -> AllocationResult:
        """
        Allocate students to teams.

        Args:
            students: Roster to allocate
            criteria: Subject names, or ``Role`` objects for role mode
            requested_team_count: Number of teams wanted
            min_mode: 'global' or 'individual'
            global_min: Minimum per criterion in global mode
            individual_mins: Minimum per criterion id in individual mode

        Returns:
            AllocationResult with the non-empty teams and sorted warnings
        """
        mode = MinStudentMode(min_mode)
        individual_mins = dict(individual_mins or {})
        roles = [c for c in criteria if isinstance(c, Role)]

        if roles and len(roles) != len(criteria):
            raise ValueError("Criteria must be either all subjects or all roles, not a mix")
        if roles:
            return self.allocate_by_roles(students, roles, requested_team_count, mode,
                                          global_min, individual_mins)

        quota = QuotaConfig(mode=mode, global_minimum=global_min,
                            individual_minimums=individual_mins,
                            upper_limit_margin=self.settings.upper_limit_margin)
        return self.allocate_by_subjects(students, [str(c) for c in criteria],
                                         requested_team_count, quota)

    def allocate_by_roles(self,
                          students: Sequence[Student],
                          roles: Sequence[Role],
                          requested_team_count: int,
                          min_mode: MinStudentMode = MinStudentMode.GLOBAL,
                          global_min: int = 1,
                          individual_mins: Optional[Mapping[str, int]] = None) -> AllocationResult:
        """Role-based allocation through virtual subjects."""
        virtual_students, mapping = roles_to_virtual_subjects(students, roles)
        sections = sum(len(groups) for groups in mapping.virtual_groups.values())
        self.log(f"Role mode: {len(roles)} role(s) mapped to virtual subjects over {sections} section(s)")
        quota = virtual_quota(min_mode, global_min, individual_mins or {}, mapping,
                              upper_limit_margin=self.settings.upper_limit_margin)

        result = self.allocate_by_subjects(virtual_students, mapping.virtual_subjects,
                                           requested_team_count, quota)
        return restore_roles(result, mapping, students)

    def allocate_by_subjects(self,
                             students: Sequence[Student],
                             subjects: Sequence[str],
                             requested_team_count: int,
                             quota: QuotaConfig) -> AllocationResult:
        """Run the full pipeline for subject criteria."""
        self.log("=" * 70)
        self.log("STARTING ALLOCATION")
        self.log("=" * 70)

        subjects = list(dict.fromkeys(subjects))
        warnings = WarningCollector()
        relevant = [s for s in students if any(s.takes(subject) for subject in subjects)]
        minimums = quota.as_dict(subjects)
        self.log(f"{len(relevant)} of {len(students)} students take a selected criterion")

        plan = plan_allocation(students, subjects, requested_team_count, quota)
        if not plan.feasible:
            self.log(f"Infeasible: {plan.critical_message}")
            warnings.infeasible(plan.critical_message, subject=plan.bottleneck)
            return AllocationResult(
                teams=(),
                warnings=warnings.build(),
                requested_team_count=requested_team_count,
                effective_team_count=0,
                unassigned=tuple(relevant),
                criteria=tuple(subjects),
                minimums=minimums,
            )

        team_count = plan.effective_team_count
        self.log(f"Teams: {team_count} (requested {requested_team_count}, "
                 f"bottleneck: {plan.bottleneck or 'none'})")
        self.log(f"Criteria order (scarcest first): {', '.join(plan.ordered_subjects)}")

        teams = [Team(id=i + 1) for i in range(team_count)]
        manager = AssignmentManager(subjects, log=self.log)
        assigned: Set[StudentId] = set()
        # most constrained students first
        ordered = sorted(relevant, key=lambda s: len(s.enrollments))

        self.log("Phase 1: seeding minimums...")
        self._assign_minimums(teams, ordered, plan.ordered_subjects, assigned, manager, quota)
        self.log(f"  {len(assigned)} students placed")

        self.log("Phase 2: placing remaining students...")
        blocked = self._assign_remaining(teams, ordered, assigned, manager, quota)
        self.log(f"  {len(assigned)}/{len(relevant)} students placed")

        average_size = len(assigned) / team_count
        swaps = local_search(teams, manager, quota, average_size, self.rng, self.settings)
        self.log(f"Local search: {swaps} swap(s)")

        balance = final_balancing(teams, manager, quota, self.settings)
        self.log(f"Final balancing: {balance.minimum_moves} move(s) toward minimums, "
                 f"{balance.upper_moves} move(s) under upper limits")
        if balance.cap_hit:
            self.log(f"WARNING: final balancing stopped at its pass cap "
                     f"(minimum passes {balance.minimum_passes}/{balance.minimum_cap}, "
                     f"upper passes {balance.upper_passes}/{balance.upper_cap})")

        formed = [team for team in teams if team.students]
        unassigned = [s for s in relevant if s.id not in assigned]

        warnings.team_shortfall(len(formed), team_count, requested_team_count, plan.bottleneck)
        warnings.unassigned(unassigned)
        warnings.blocked_by_conflict({sid: sg for sid, sg in blocked.items() if sid not in assigned})
        warnings.team_compliance(formed, subjects, quota)

        result = AllocationResult(
            teams=tuple(formed),
            warnings=warnings.build(),
            requested_team_count=requested_team_count,
            effective_team_count=team_count,
            unassigned=tuple(unassigned),
            criteria=tuple(subjects),
            minimums=minimums,
        )
        self.log(f"Done: {len(formed)} teams, {len(unassigned)} unassigned, "
                 f"{len(result.critical_warnings)} critical warning(s)")
        return result

    # ------------------------------------------------------------------
    # Greedy phases
    # ------------------------------------------------------------------

    def _assign_minimums(self, teams: List[Team], ordered: List[Student], subjects: List[str],
                         assigned: Set[StudentId], manager: AssignmentManager,
                         quota: QuotaConfig):
        """Phase 1: give every team the configured minimum per criterion, scarcest first."""
        for subject in subjects:
            minimum = quota.minimum(subject)
            pool = [s for s in ordered if s.id not in assigned and s.takes(subject)]

            for team in teams:
                if not pool:
                    break
                requeued = []
                # recount: resolving a conflict may move a member out of the team
                while count_with_subject(team, subject) < minimum and pool:
                    student = pool.pop(0)
                    if place_student(student, team, teams, manager, self.rng, quota=quota) is None:
                        assigned.add(student.id)
                    else:
                        requeued.append(student)
                pool = requeued + pool

    def _assign_remaining(self, teams: List[Team], ordered: List[Student],
                          assigned: Set[StudentId], manager: AssignmentManager,
                          quota: QuotaConfig) -> Dict[StudentId, SubjectGroup]:
        """
        Phase 2: place everyone left, smallest teams first.

        Conflict-free teams are preferred; relocating occupants is only tried
        when no team accepts the student as is.

        Returns:
            For students blocked by a group conflict, their own subject and group.
        """
        blocked: Dict[StudentId, SubjectGroup] = {}
        for student in ordered:
            if student.id in assigned:
                continue
            # smallest teams first
            candidates = [t for t in sorted(teams, key=lambda t: t.size)
                          if not exceeds_upper_limit(student, t, manager.subjects, quota)]

            placed = False
            for team in candidates:
                conflict = find_conflict(student, team, manager.store)
                if conflict is None:
                    manager.assign(student, team)
                    placed = True
                    break
                blocked[student.id] = SubjectGroup(conflict.subject, student.group_for(conflict.subject))

            if not placed:
                for team in candidates:
                    if place_student(student, team, teams, manager, self.rng, quota=quota) is None:
                        placed = True
                        break

            if placed:
                assigned.add(student.id)
                blocked.pop(student.id, None)
            elif candidates:
                self.log(f"  Student {student.id} could not join any team")
            else:
                self.log(f"  Student {student.id} would exceed an upper limit in every team")
        return blocked

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def print_report(self, result: AllocationResult):
        """Print a human-readable allocation report."""
        print("\n" + "=" * 80)
        print("TEAM ALLOCATION REPORT")
        print("=" * 80)

        stats = result.statistics
        print(f"\n{'SUMMARY':^80}")
        print("-" * 80)
        print(f"  Students: {stats['assigned']}/{stats['total_students']} assigned "
              f"({stats['assignment_rate']:.1f}%)")
        print(f"  Teams: {stats['teams_formed']} formed, {stats['teams_planned']} planned, "
              f"{stats['teams_requested']} requested")
        if result.teams:
            print(f"  Team sizes: {stats['min_team_size']}-{stats['max_team_size']}")

        print(f"\n{'TEAMS':^80}")
        print("-" * 80)
        for team in result.teams:
            counts = ', '.join(
                f"{criterion}: {result.criterion_count(team, criterion)}"
                f"/{result.minimums.get(criterion, 1)}"
                for criterion in result.criteria
            )
            print(f"\n  Team {team.id} ({team.size} students)  {counts}")
            for s in team.students:
                sections = ', '.join(sg.label() for sg in s.enrollments)
                print(f"     ({s.id}) {s.name}: {sections}")

        critical = [w for w in result.warnings if w.is_critical]
        notes = [w for w in result.warnings if not w.is_critical]
        if critical:
            print(f"\n{'CRITICAL WARNINGS':^80}")
            print("-" * 80)
            for w in critical:
                print(f"  ⚠ {w.message}")
        if notes:
            print(f"\n{'WARNINGS':^80}")
            print("-" * 80)
            for w in notes:
                print(f"  ℹ {w.message}")

        print("\n" + "=" * 80)

    def export_solution(self, result: AllocationResult, students: Sequence[Student],
                        output_path: str = "team_assignments.xlsx",
                        roles: Optional[Sequence[Role]] = None):
        """Export the allocation to an Excel workbook."""
        from .spreadsheets import export_allocation

        self.log(f"Exporting solution to {output_path}...")
        export_allocation(result, students, output_path, roles=roles)
        self.log(f"Solution exported to {output_path}")
