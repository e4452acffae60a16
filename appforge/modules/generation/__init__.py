"""
Generation Module
AI providers that turn a prompt into a GenerationResult
"""

from appforge.modules.generation.collaborators import (
    AICollaborator,
    AnthropicCollaborator,
    GeminiCollaborator,
    get_collaborator,
)

__all__ = [
    'AICollaborator',
    'AnthropicCollaborator',
    'GeminiCollaborator',
    'get_collaborator',
]
