# Services package init
"""
eTuition Backend - Services Layer
=================================

What:  Business logic between routes (HTTP) and the database (persistence).
How:   Stateless singletons; every method receives the request's
       AsyncSession. Services flush, the session dependency commits.

Service Inventory:
    - UserService: registration, token issuance, role lookup, user admin
    - TuitionService: public listing, student posts, admin moderation
    - ApplicationService: apply with de-duplication, tutor/student views
    - PaymentService: checkout, reconciliation, histories and reports
    - AdminService: dashboard aggregates
    - PaymentGateway (abstract) / StripeGateway: hosted checkout provider
"""
