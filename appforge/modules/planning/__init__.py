"""
Planning Module
Turns a project configuration into an idempotent scaffolding command sequence
"""

from appforge.modules.planning.command_planner import command_planner, plan, CommandPlanner, PackageSet

__all__ = [
    'command_planner',
    'plan',
    'CommandPlanner',
    'PackageSet',
]
