"""
Data models for the Orbit template engine.

Import models explicitly from their modules where possible:
    from orbit.models.catalog import Milestone, Phase
    from orbit.models.template import Template, TemplateItem
    from orbit.models.results import ActionResult
    from orbit.models.files import TableFile, ConfigFile
"""

from .catalog import CatalogItem, Milestone, Phase
from .results import ActionResult
from .template import Template, TemplateItem

__all__ = [
    "CatalogItem",
    "Milestone",
    "Phase",
    "Template",
    "TemplateItem",
    "ActionResult",
]
