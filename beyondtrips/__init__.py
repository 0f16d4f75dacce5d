"""
Beyond Trips Backend — Rewards Service Package
==============================================

What: Backend for the magazine-pickup, rider review and BTL coin reward
      lifecycle of the Beyond Trips marketplace.
Who:  Imported by uvicorn (`beyondtrips.main:app`), Alembic and pytest.

Architecture Note:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (State machine, intake,  │  ← Business rules
    │   rewards, ledger, side effects)    │
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Rider-facing endpoints are public; driver and admin endpoints rely on
    identity headers set by the upstream gateway.
"""

__version__ = "1.0.0"
