"""
Catalog models for the Orbit template engine.

Milestones and phases are reusable lookup entries. They are never
hard-deleted: archiving flips is_active and stamps the audit fields.
"""

import re
import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from orbit.constants import DEFAULT_COLOR_KEY

PairPosition = Literal["start", "end"]


class CatalogItem(BaseModel):
    """
    Base model for milestone and phase catalog entries.

    Common fields:
    - id: Unique identifier
    - internal_name: Stable machine name (e.g. ``patient_in``)
    - display_name: Human-facing label
    - display_order: Position in the catalog listing
    - is_active / deleted_at / deleted_by: archive state and audit stamps
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    internal_name: str
    display_name: str
    display_order: int = 0
    is_active: bool = True
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None

    @field_validator("internal_name")
    @classmethod
    def validate_internal_name(cls, v: str) -> str:
        """Internal names are lowercase identifiers."""
        if not re.match(r"^[a-z0-9_]+$", v):
            raise ValueError(
                f'Internal name "{v}" must be lowercase letters, digits and underscores'
            )
        return v

    @property
    def is_archived(self) -> bool:
        return not self.is_active


class Milestone(CatalogItem):
    """A point-in-time event type that can be recorded during a case.

    Paired milestones describe an interval: the ``start`` side points at the
    ``end`` side and vice versa.
    """

    pair_with_id: Optional[str] = None
    pair_position: Optional[PairPosition] = None

    @property
    def is_paired(self) -> bool:
        return self.pair_with_id is not None


class Phase(CatalogItem):
    """A named stage of the workflow. May nest one level under a parent phase."""

    color_key: str = DEFAULT_COLOR_KEY
    parent_phase_id: Optional[str] = None
