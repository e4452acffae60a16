"""AppForge - AI response to scaffolded project pipeline"""

__version__ = "1.0.0"
