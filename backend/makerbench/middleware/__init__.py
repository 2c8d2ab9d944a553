# Middleware package init
"""
MakerBench Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Rate Limit first: reject abusive clients before any processing
    2. Request ID: correlation ID for logs and error envelopes
    3. Logging: access line with status and duration, tagged with the ID
    4. GZip / CORS: Starlette built-ins

    Responses travel back through the chain in reverse, so the request ID
    header and the access log see the final status code.
"""
