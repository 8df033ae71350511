"""
SiteGrade - website grading across seven factors.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .pipeline import GradingPipeline, grade_website
from .report import CompositeReport

__all__ = ["__version__", "CompositeReport", "Config", "GradingPipeline", "grade_website"]
