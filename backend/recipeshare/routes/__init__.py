# Routes package init
"""
Recipe Share Backend — API Routes Package
===========================================

Route Inventory:
    - auth.py:     POST /api/v1/auth/signup, /api/v1/auth/signin
    - recipes.py:  /api/v1/recipe  (create, list, get, update, delete, save)
    - users.py:    /api/v1/user    (profile, admin list, shared, saved)
    - media.py:    GET  /media/{path}   (stored recipe images)
    - health.py:   GET  /health

Design Principle:
    Routes stay thin: decode the request (form fields, JSON-encoded arrays,
    bearer identity), call one service method, wrap the result in the
    {success, message, data} envelope.
"""
