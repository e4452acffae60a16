"""
Layout Module
Places extracted files into the conventional project directory structure
"""

from appforge.modules.layout.classifier import (
    layout_classifier,
    organize,
    LayoutClassifier,
    OwnershipRule,
    OWNERSHIP_RULES,
    Stack,
)

__all__ = [
    'layout_classifier',
    'organize',
    'LayoutClassifier',
    'OwnershipRule',
    'OWNERSHIP_RULES',
    'Stack',
]
