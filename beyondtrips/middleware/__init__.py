# Middleware package init
"""
Beyond Trips Backend — Middleware Package
=========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Request ID] → [Logging] → [Rate Limit] → [GZip] → [CORS] → Route

    1. Request ID first so every later log line, including rate-limit
       rejections, carries the correlation ID
    2. Logging sees the final status of every request, 429s included
    3. Rate limit only guards /api/public paths
"""
