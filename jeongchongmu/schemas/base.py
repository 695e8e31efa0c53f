"""
Shared pydantic base for backend payloads.
"""
from typing import Any, Dict
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base schema reading and writing the backend's camelCase keys."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for a request body (camelCase, unset optionals dropped)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
