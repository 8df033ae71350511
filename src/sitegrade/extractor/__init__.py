"""
SiteGrade content extraction.

Turns fetched HTML into the immutable ``SignalBundle`` read by every factor
analyzer: main-content text blocks, headings, metadata, structured data, link
and image inventories, scripts and language.
"""

from .language_detector import LanguageDetector
from .signal_extractor import ContentExtractor, normalize_text, text_digest
from .structured_data import StructuredDataParser

__all__ = [
    "ContentExtractor",
    "LanguageDetector",
    "StructuredDataParser",
    "normalize_text",
    "text_digest",
]
