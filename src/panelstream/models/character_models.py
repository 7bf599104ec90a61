"""
AI character catalog models.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CharacterConfig(BaseModel):
    """Server-side configuration of an AI character (persona + model + tools)."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str = Field(..., min_length=1, description="Character identifier")
    name: str = Field(default="Unknown", description="Display name")
    model: str | None = Field(default=None, description="Model deployment used by the character")
    description: str | None = None
    tools: list[str] = Field(default_factory=list, description="Names of AI tools assigned to the character")
    is_active: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("tools", mode="before")
    @classmethod
    def normalize_tools(cls, v: Any) -> list[str]:
        """Accept plain names or tool objects carrying a ``name`` key."""
        if v is None:
            return []
        names = []
        for item in v:
            if isinstance(item, dict):
                tool_name = item.get("name") or item.get("tool_name")
                if tool_name:
                    names.append(str(tool_name))
            else:
                names.append(str(item))
        return names

    def supports_tool(self, tool_name: str) -> bool:
        return tool_name in self.tools


class CharacterSummary(BaseModel):
    """Participant entry announced at the start of a multi-character session."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    name: str = "Unknown"
    order: int | None = None


__all__ = ["CharacterConfig", "CharacterSummary"]
