# Middleware package init
"""
Recipe Share Backend — Middleware Package
===========================================

Middleware Chain (order matters!):
    Request → [Request ID] → [Rate Limit] → [Logging] → [GZip] → [CORS] → Route

    1. Request ID FIRST: correlation ID for every later log line and every
       error body, 429s included
    2. Rate Limit: per-IP token bucket rejects abusive clients before any
       other work happens
    3. Logging: method, path, status and duration of each request
"""
