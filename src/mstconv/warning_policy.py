"""Coded conversion warnings and the policy that filters them.

Every condition the converter tolerates is reported with a short ``Wxx``
code so callers can silence or escalate each one individually.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Literal

from mstconv.errors import ValidationError

CODE_DESCRIPTIONS: dict[str, str] = {
    "W01": "texture could not be located or decoded",
    "W02": "node references a mesh index out of range",
    "W03": "material property payload is too short",
    "W04": "face has fewer than 3 indices",
}

KNOWN_CODES: frozenset[str] = frozenset(CODE_DESCRIPTIONS)

Action = Literal["warn", "ignore", "error"]


class ConversionWarning(UserWarning):
    """A tolerated conversion problem tagged with its code."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.detail = message
        super().__init__(f"[{code}] {message}")


def parse_code_list(raw: str) -> frozenset[str]:
    """Parse a comma-separated string of W-codes and validate them.

    Raises ``ValueError`` for unknown codes.
    """
    codes: set[str] = set()
    for token in raw.split(","):
        token = token.strip().upper()
        if not token:
            continue
        if token not in KNOWN_CODES:
            raise ValueError(f"Unknown warning code: {token!r} (known: {sorted(KNOWN_CODES)})")
        codes.add(token)
    return frozenset(codes)


@dataclass(frozen=True)
class WarningPolicy:
    """Per-code handling of conversion warnings.

    A code may be escalated or suppressed, not both.
    """

    warn_as_error: frozenset[str] = frozenset()
    suppress: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        overlap = self.warn_as_error & self.suppress
        if overlap:
            raise ValueError(
                f"Warning codes both escalated and suppressed: {', '.join(sorted(overlap))}"
            )

    @classmethod
    def from_code_lists(
        cls, warn_as_error: str | None = None, suppress: str | None = None
    ) -> WarningPolicy:
        """Build a policy from comma-separated code strings such as ``"W01,W03"``."""
        return cls(
            warn_as_error=parse_code_list(warn_as_error or ""),
            suppress=parse_code_list(suppress or ""),
        )

    def action(self, code: str) -> Action:
        if code in self.suppress:
            return "ignore"
        if code in self.warn_as_error:
            return "error"
        return "warn"


def emit_warning(code: str, message: str, *, policy: WarningPolicy | None = None) -> None:
    """Report a tolerated condition according to ``policy``.

    Without a policy the warning is always issued. An escalated code raises
    ``ValidationError`` instead, which is the only way a tolerated condition
    stops a conversion.
    """
    action = policy.action(code) if policy is not None else "warn"
    if action == "ignore":
        return
    if action == "error":
        raise ValidationError(f"[{code}] {message}")
    warnings.warn(ConversionWarning(code, message), stacklevel=2)
