# Routes package init
"""
eTuition Backend - API Routes Package
=====================================

What:  HTTP route handlers. Paths are mounted at the root (no prefix); the
       frontend calls them as-is.

Route Inventory:
    - health.py:        GET /, GET /health
    - users.py:         registration, /getToken, role lookup, tutors, user admin
    - tuitions.py:      public browsing, student posts, admin moderation
    - applications.py:  apply, tutor applications, student applicant view
    - payments.py:      checkout, reconciliation, histories, admin report
    - admin.py:         GET /admin/stats

Routes stay thin: extract parameters, apply the role gate, call a service.
Business rules and error decisions live in the services.
"""
