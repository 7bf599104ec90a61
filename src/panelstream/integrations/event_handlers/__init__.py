"""
Wire event handlers translating transport events into router and panel dispatches.
"""

from __future__ import annotations

from .base import WireEventHandler, parse_payload
from .registry import build_event_handlers

__all__ = ["WireEventHandler", "build_event_handlers", "parse_payload"]
