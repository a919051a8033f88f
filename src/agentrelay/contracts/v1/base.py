from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class WireModel(BaseModel):
    """Snake_case in Python, camelCase (via aliases) on the wire."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
