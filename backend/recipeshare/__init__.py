"""
Recipe Share Backend — Application Package Initializer
========================================================

What: Marks the `recipeshare` directory as a Python package.
Who:  Imported by Alembic, pytest and uvicorn (`recipeshare.main:app`).

Architecture Note:
    ┌─────────────────────────────────────┐
    │   Routes + Dependencies (HTTP)      │  ← status codes, form decoding, identity
    ├─────────────────────────────────────┤
    │   Services (Business Logic)         │  ← validation, authorization, image pipeline
    ├─────────────────────────────────────┤
    │   Models & Schemas (Data)           │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database (UnitOfWork, sessions)   │  ← one transaction per multi-step write
    └─────────────────────────────────────┘

    Services never see a request object: routes resolve the caller into an
    explicit Identity and pass it down.
"""

__version__ = "1.0.0"
