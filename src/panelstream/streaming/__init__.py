"""
Streaming Module - Conversation Routing and Invocation State Machines
=====================================================================

Modules:
    router: ConversationEventRouter (conversation-scoped subscriptions, tool filtering)
    panel_registry: PanelRegistry (panel -> conversation mapping, panel-scoped events)
    connection: StreamingConnection (transport + router + registry for one app session)
    invocation: StreamingInvocationController (single-flight tool invocation)
    multi_character: MultiCharacterSessionController (per-character response slots)
    character_chat: AICharacterChat (free-form chat with one catalog character)
"""

from panelstream.streaming.router import ConversationEventRouter
from panelstream.streaming.panel_registry import PanelRegistry
from panelstream.streaming.connection import StreamingConnection
from panelstream.streaming.invocation import StreamingInvocationController
from panelstream.streaming.multi_character import MultiCharacterSessionController
from panelstream.streaming.character_chat import AICharacterChat

__all__ = [
    "AICharacterChat",
    "ConversationEventRouter",
    "MultiCharacterSessionController",
    "PanelRegistry",
    "StreamingConnection",
    "StreamingInvocationController",
]
