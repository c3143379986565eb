"""
Canteen Service — Shared schema bases
"""
from typing import ClassVar

from pydantic import BaseModel, model_validator


class PartialUpdate(BaseModel):
    """
    PATCH body. Omitted fields are left alone; an explicit null is only
    accepted for the fields listed in ``nullable`` and clears them.
    """
    nullable: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_nulls(self):
        nulls = sorted(
            name for name in self.model_fields_set
            if getattr(self, name) is None and name not in self.nullable
        )
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
        return self
