"""
Typed operation results.

Refusals (archiving the default template, invalid nesting, empty names,
removing required structure) are returned, not raised, so callers can show
the reason inline.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class ActionResult:
    """Outcome of a builder, catalog or template operation."""

    blocked: bool = False
    reason: Optional[str] = None
    count: Optional[int] = None
    value: Any = None

    @classmethod
    def ok(cls, value: Any = None, count: Optional[int] = None) -> "ActionResult":
        return cls(blocked=False, value=value, count=count)

    @classmethod
    def refuse(cls, reason: str, count: Optional[int] = None) -> "ActionResult":
        return cls(blocked=True, reason=reason, count=count)
