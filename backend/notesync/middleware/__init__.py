"""
NoteSync Backend — Middleware Package
=======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID: correlation ID for every log line of the request
    2. Logging: method, path, status and duration, tagged with the request ID
    3. GZip: compresses larger JSON note lists
    4. CORS: FastAPI's CORSMiddleware (handles preflight)
"""
