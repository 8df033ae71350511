"""
Language detection for page main content.

Uses ``langdetect`` first and falls back to counting function-word hits per
language when langdetect finds no usable features or is not confident. The
result is cross-checked against the declared ``<html lang>`` by analyzers.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Pattern

import structlog
from langdetect import DetectorFactory, LangDetectException, detect_langs
from langdetect.detector_factory import init_factory

logger = structlog.get_logger(__name__)

# langdetect samples randomly; a fixed seed keeps extraction deterministic.
DetectorFactory.seed = 0
# Profiles load lazily and unguarded; extraction runs in worker threads.
init_factory()

# Common function words per language
LANGUAGE_PATTERNS: Dict[str, List[str]] = {
    "en": [
        r"\b(the|and|or|but|with|from|this|that|these|those|is|are|was|were)\b",
        r"\b(what|where|when|why|how|which|who)\b",
    ],
    "es": [
        r"\b(el|los|las|y|pero|con|por|para|una|del|es|son)\b",
        r"\b(que|como|cuando|donde|quien|cual)\b",
    ],
    "fr": [
        r"\b(le|les|et|mais|dans|avec|pour|une|des|du|est|sont)\b",
        r"\b(que|comme|quand|où|qui|quel)\b",
    ],
    "de": [
        r"\b(der|die|das|und|oder|aber|auf|mit|von|für|ist|sind|nicht)\b",
        r"\b(was|wie|wann|wo|wer|welche)\b",
    ],
}

MIN_MATCHES = 5
MIN_CONFIDENCE = 0.8
MIN_TEXT_LENGTH = 20


class LanguageDetector:
    """Detects the dominant language of a text."""

    def __init__(self, min_confidence: float = MIN_CONFIDENCE, min_matches: int = MIN_MATCHES) -> None:
        self.min_confidence = min_confidence
        self.min_matches = min_matches
        self._compiled: Dict[str, List[Pattern[str]]] = {
            lang: [re.compile(pattern, re.IGNORECASE) for pattern in patterns]
            for lang, patterns in LANGUAGE_PATTERNS.items()
        }

    def detect(self, text: str) -> Optional[str]:
        """Return an ISO 639-1 code, or None when the evidence is too thin."""
        if not text or len(text.strip()) < MIN_TEXT_LENGTH:
            return None

        result = self._detect_with_langdetect(text)
        if result:
            return result
        return self._detect_with_patterns(text)

    def _detect_with_langdetect(self, text: str) -> Optional[str]:
        try:
            candidates = detect_langs(text)
        except LangDetectException as e:
            logger.debug("langdetect found no features", error=str(e))
            return None

        if not candidates:
            return None
        best = candidates[0]
        if best.prob < self.min_confidence:
            logger.debug("langdetect below confidence", lang=best.lang, prob=round(best.prob, 3))
            return None
        # zh-cn / zh-tw collapse to the primary subtag like <html lang>
        return best.lang.split("-")[0]

    def _detect_with_patterns(self, text: str) -> Optional[str]:
        scores = {
            lang: sum(len(pattern.findall(text)) for pattern in patterns) for lang, patterns in self._compiled.items()
        }
        # Ties resolve by pattern table order.
        best = max(scores, key=lambda lang: scores[lang])
        if scores[best] < self.min_matches:
            return None
        return best
