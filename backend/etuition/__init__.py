"""
eTuition Backend - Application Package
======================================

What:  REST backend for the tuition marketplace. Students post tuition requests,
       tutors apply, admins moderate posts and users, and Stripe collects payment
       for the application a student accepts.
Who:   Imported by uvicorn (`etuition.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │      Routes (API Layer)             │  ← HTTP concerns, auth dependencies
    ├─────────────────────────────────────┤
    │      Auth (tokens + role gate)      │  ← Bearer token -> Principal -> RoleGate
    ├─────────────────────────────────────┤
    │      Services (Business Logic)      │  ← Queries, ownership rules, payments
    ├─────────────────────────────────────┤
    │      Models & Schemas (Data)        │  ← SQLAlchemy ORM + Pydantic (camelCase)
    ├─────────────────────────────────────┤
    │      Database (Persistence)         │  ← Async SQLAlchemy session per request
    └─────────────────────────────────────┘

    The payment provider sits beside the services layer behind the
    PaymentGateway interface (services/payment_base.py).
"""

__version__ = "1.0.0"
