"""
Integrations Module - External System Integrations
===================================================

Provides the transport session to the AI gateway, the character catalog
lookup and the handlers translating wire events for the streaming layer.

Modules:
    transport: TransportSession protocol consumed by the streaming layer
    websocket_transport: websockets-based TransportSession implementation
    character_catalog: CharacterCatalog protocol and httpx implementation
    event_handlers: Wire event -> router/panel registry translation
"""
