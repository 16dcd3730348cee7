"""
In-memory representation of a synchronized record.
"""
from __future__ import annotations

from pydantic import BaseModel

from .names import InternalName

__all__ = [
    "Template",
]


class Template(BaseModel):
    """
    Code of a record along with its identity. Built per query row or per
    local file and never stored as-is.
    """

    schema_id: str | None = None
    name: InternalName | None = None
    label: str | None = None
    code: str = ""

    @property
    def has_metadata(self) -> bool:
        return self.name is not None

    @property
    def display_name(self) -> str:
        return str(self.name) if self.name else "<unnamed>"
