"""
Orchestrator Module
Runs a scaffold session from AI response to live project or downloadable archive
"""

from appforge.modules.orchestrator.session_orchestrator import SessionOrchestrator, StrategyOutcome

__all__ = [
    'SessionOrchestrator',
    'StrategyOutcome',
]
