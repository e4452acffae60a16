"""
Extraction Module
Turns raw AI output into prose, a project configuration and a raw file set
"""

from appforge.modules.extraction.file_extractor import file_extractor, FileExtractor, ContentRule, CONTENT_RULES
from appforge.modules.extraction.config_parser import config_parser, ConfigParser
from appforge.modules.extraction.response_splitter import response_splitter, ResponseSplitter

__all__ = [
    # Singleton instances
    'file_extractor',
    'config_parser',
    'response_splitter',

    # Classes
    'FileExtractor',
    'ContentRule',
    'CONTENT_RULES',
    'ConfigParser',
    'ResponseSplitter',
]
