"""
Markup validator adapter (Nu HTML Checker JSON API).
"""

from __future__ import annotations

from typing import Any, List

from sitegrade.adapters.base import PayloadError, SignalAdapter
from sitegrade.adapters.result import ValidatorMessage, ValidatorOutcome

MAX_REPORTED_ERRORS = 50


def parse_validator_payload(payload: Any) -> ValidatorOutcome:
    """Interpret a Nu HTML Checker ``out=json`` response.

    Only messages of type ``error`` count against validity; ``info`` messages
    (including warnings) do not. A ``non-document-error`` means the checker
    itself failed, which is not a verdict about the page.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("messages"), list):
        raise PayloadError("validator response has no 'messages' list")

    errors: List[ValidatorMessage] = []
    for message in payload["messages"]:
        if not isinstance(message, dict):
            raise PayloadError("validator message is not an object")
        kind = message.get("type")
        if kind == "non-document-error":
            raise PayloadError(f"validator could not check the document: {message.get('message', 'unknown')}")
        if kind != "error":
            continue
        line = message.get("lastLine")
        errors.append(
            ValidatorMessage(
                message=str(message.get("message", "")).strip(),
                line=line if isinstance(line, int) else None,
                extract=message.get("extract"),
            )
        )

    return ValidatorOutcome(is_valid=not errors, errors=tuple(errors[:MAX_REPORTED_ERRORS]))


class MarkupValidatorAdapter(SignalAdapter[ValidatorOutcome]):
    """Submits the page HTML to a markup validator."""

    name = "validator"

    def __init__(self, session, budget, *, endpoint: str, timeout_seconds: float, enabled: bool = True) -> None:
        super().__init__(session, budget, timeout_seconds=timeout_seconds, enabled=enabled)
        self.endpoint = endpoint

    async def _call(self, html: bytes) -> ValidatorOutcome:
        payload = await self._request_json(
            "POST",
            self.endpoint,
            params={"out": "json"},
            data=html,
            headers={"Content-Type": "text/html; charset=utf-8"},
        )
        return parse_validator_payload(payload)
