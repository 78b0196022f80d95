"""
Command-line entry point.

Example:
    team-allocator roster.xlsx --teams 4 --subjects Math,Physics --min 2
    team-allocator roster.xlsx --teams 4 --roles roles.json --min-mode individual
"""

import argparse
import json
import os
import sys
from typing import List, Optional

from .config import AllocationSettings
from .models import MinStudentMode, Role
from .solver import TeamAllocator
from .spreadsheets import RosterError, read_roster


def load_roles(path: str) -> List[Role]:
    """Read role definitions from a JSON file holding a list of role objects."""
    with open(path, encoding='utf-8') as handle:
        data = json.load(handle)
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of roles")
    return [Role.from_dict(item) for item in data]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='team-allocator',
        description="Allocate students to teams with per-subject or per-role minimums.")
    parser.add_argument("roster", help="Roster file (.xlsx, .xls or .csv)")
    parser.add_argument("--teams", type=int, required=True, help="Number of teams requested")

    criteria = parser.add_mutually_exclusive_group()
    criteria.add_argument("--subjects", type=str, default=None,
                          help="Comma-separated subjects to balance (default: every subject in the roster)")
    criteria.add_argument("--roles", type=str, default=None,
                          help="JSON file with role definitions (id, name, subjects, minimum_students)")

    parser.add_argument("--min-mode", choices=[m.value for m in MinStudentMode],
                        default=MinStudentMode.GLOBAL.value, help="How minimums are configured")
    parser.add_argument("--min", dest="global_min", type=int, default=1,
                        help="Minimum per team for every criterion (global mode)")
    parser.add_argument("--min-for", action="append", default=[], metavar="CRITERION=N",
                        help="Minimum for one criterion (individual mode); repeatable")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for the local search")
    parser.add_argument("--max-iterations", type=int, default=None,
                        help="Local search passes (default: 50)")
    parser.add_argument("--output", type=str, default="team_assignments.xlsx",
                        help="Output workbook path")
    parser.add_argument("--quiet", action="store_true", help="Only print the final report")
    return parser


def _parse_minimums(items: List[str]) -> dict:
    minimums = {}
    for item in items:
        criterion, sep, value = item.rpartition('=')
        if not sep or not criterion:
            raise ValueError(f"Expected CRITERION=N, got '{item}'")
        minimums[criterion.strip()] = int(value)
    return minimums


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for standalone execution."""
    args = build_parser().parse_args(argv)

    if not os.path.exists(args.roster):
        print(f"Error: Roster file not found: {args.roster}")
        return 1

    settings = AllocationSettings.from_mapping({'max_iterations': args.max_iterations})
    allocator = TeamAllocator(settings=settings, verbose=not args.quiet, seed=args.seed)

    try:
        students, subjects = read_roster(args.roster, log=allocator.log)
        individual_mins = _parse_minimums(args.min_for)
        roles = load_roles(args.roles) if args.roles else None
    except (RosterError, ValueError, OSError) as e:
        print(f"Error: {e}")
        return 1

    if roles:
        criteria = roles
    elif args.subjects:
        criteria = [s.strip() for s in args.subjects.split(',') if s.strip()]
    else:
        criteria = subjects

    result = allocator.allocate(
        students,
        criteria,
        args.teams,
        min_mode=args.min_mode,
        global_min=args.global_min,
        individual_mins=individual_mins,
    )

    allocator.print_report(result)
    allocator.export_solution(result, students, args.output, roles=roles)
    print(f"\nComplete! Check '{args.output}' for the full allocation.")
    return 1 if result.critical_warnings else 0


if __name__ == "__main__":
    sys.exit(main())
