"""
Base types and payload parsing shared by the wire event handlers.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from panelstream.utils.logger import logger

#: Handler registered with the transport for one wire event name
WireEventHandler = Callable[[dict[str, Any]], None]

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def parse_payload(model: type[PayloadT], event: str, data: dict[str, Any]) -> PayloadT | None:
    """Validate a raw wire payload, logging and dropping malformed frames."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Dropping malformed {event} payload: {e.error_count()} validation errors")
        return None


__all__ = ["PayloadT", "WireEventHandler", "parse_payload"]
