"""
Jotter Backend — Middleware Package
===================================

Request path (outermost first):
    RequestID → Logging → BodyLimit → CORS → route handler

    1. RequestID: correlation id for logs and error bodies
    2. Logging: sees every response, including 413s from BodyLimit
    3. BodyLimit: rejects oversized bodies before they are parsed
"""
