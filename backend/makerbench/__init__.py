"""
MakerBench Backend — Application Package Initializer
=====================================================

What: Marks the `makerbench` directory as a Python package.
Who:  Used by uvicorn (`makerbench.main:app`), Alembic, pytest and the API client.

Architecture Note:
    The backend follows the same layered layout for every feature:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns, envelopes
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← search, submission, moderation
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    External integrations (page metadata, screenshots, image storage) live
    in the services layer behind small adapters so routes never talk to
    third-party services directly.
"""

__version__ = "1.0.0"
