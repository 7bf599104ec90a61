"""
panelstream - Real-time AI streaming orchestration
==================================================

Multiplexes many panel-scoped AI conversations over one duplex connection,
drives single-flight tool invocations through their life cycle and
coordinates multi-character sessions.

Packages:
    core: Settings and wire constants
    utils: Structured logging
    models: Wire payloads, state snapshots, errors
    integrations: Transport session, character catalog, wire event handlers
    streaming: Router, panel registry, invocation and session controllers
    features: Feature-specific wrappers over the invocation controller
"""

from panelstream.features import (
    AIAnalysis,
    HeadlineAnalysis,
    ProfileAnalysis,
    ProposalAnalysis,
    ViralPostAnalysis,
)
from panelstream.integrations.character_catalog import CharacterCatalog, HttpCharacterCatalog
from panelstream.integrations.transport import TransportSession
from panelstream.integrations.websocket_transport import WebSocketTransport
from panelstream.models.stream_models import InvocationSnapshot, InvocationState
from panelstream.streaming import (
    AICharacterChat,
    ConversationEventRouter,
    MultiCharacterSessionController,
    PanelRegistry,
    StreamingConnection,
    StreamingInvocationController,
)

__version__ = "0.1.0"

__all__ = [
    "AICharacterChat",
    "AIAnalysis",
    "CharacterCatalog",
    "ConversationEventRouter",
    "HeadlineAnalysis",
    "HttpCharacterCatalog",
    "InvocationSnapshot",
    "InvocationState",
    "MultiCharacterSessionController",
    "PanelRegistry",
    "ProfileAnalysis",
    "ProposalAnalysis",
    "StreamingConnection",
    "StreamingInvocationController",
    "TransportSession",
    "ViralPostAnalysis",
    "WebSocketTransport",
    "__version__",
]
