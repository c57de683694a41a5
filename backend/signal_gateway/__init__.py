"""
Signaling Gateway.

Pairs anonymous clients into one-to-one sessions and relays WebRTC
negotiation messages between them over WebSocket or server-sent events.
"""
