"""
Template models for the Orbit template engine.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


class Template(BaseModel):
    """A named, ordered assignment of milestones into phases.

    block_order maps a parent phase id to the ordered ids rendered inside its
    block. sub_phase_map maps a child phase id to its parent phase id for this
    template only; the catalog's parent_phase_id is not consulted.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    description: Optional[str] = None
    is_default: bool = False
    is_active: bool = True
    deleted_at: Optional[datetime] = None
    block_order: Dict[str, List[str]] = Field(default_factory=dict)
    sub_phase_map: Dict[str, str] = Field(default_factory=dict)


class TemplateItem(BaseModel):
    """One placement of a milestone inside a phase of a template.

    phase_id is None for milestones in the unassigned bucket.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    template_id: str
    milestone_id: str
    phase_id: Optional[str] = None
    display_order: int = 0

    @property
    def identity(self) -> Tuple[str, Optional[str], str]:
        """Uniqueness key. A shared boundary milestone has two distinct identities."""
        return (self.template_id, self.phase_id, self.milestone_id)
