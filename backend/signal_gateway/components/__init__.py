"""
Signaling Gateway Components.

- core/       - constants, protocol errors, connection context
- connection/ - transport handles, heartbeat frames, rate limiting
- endpoints/  - WebSocket and server-sent event endpoints
- metrics/    - counters and Prometheus export
"""
