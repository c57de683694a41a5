"""
Signaling Gateway Core Module.

- session/: registry, matchmaking, relay, teardown, liveness, dispatch
"""
