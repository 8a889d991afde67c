"""
Cook Journal Backend — Middleware Package
===========================================

Execution order for an incoming request:
    [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

Rate limiting runs first so rejected requests cost nothing downstream; the
request id is set before the access logger reads it.
"""
