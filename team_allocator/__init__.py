"""
Team allocation engine: balanced teams with per-subject or per-role minimums
and group consistency.
"""

from .config import DEFAULT_SETTINGS, AllocationSettings
from .criteria import QuotaConfig
from .models import (AllocationResult, AssignmentWarning, MinStudentMode, Role, Student,
                     SubjectGroup, Team)
from .roles import RoleMappingError
from .solver import TeamAllocator
from .spreadsheets import RosterError, export_allocation, read_roster, write_template

__version__ = '1.0.0'

__all__ = [
    'AllocationResult',
    'AllocationSettings',
    'AssignmentWarning',
    'DEFAULT_SETTINGS',
    'MinStudentMode',
    'QuotaConfig',
    'Role',
    'RoleMappingError',
    'RosterError',
    'Student',
    'SubjectGroup',
    'Team',
    'TeamAllocator',
    'export_allocation',
    'read_roster',
    'write_template',
]
