# Services package init
"""
Beyond Trips Backend — Services Layer
=====================================

What:  Business rules between the HTTP routes and the ORM models.
How:   Services take an AsyncSession plus plain values or request schemas,
       raise BeyondTripsError subclasses, and never commit the caller's
       session. The request's session dependency commits at the end; a
       route that schedules a queue drain commits first so the drain can
       see the tasks. The task queue's worker opens its own sessions.

Service Inventory:
    - pickup_state:      pickup status transition table and edge side effects
    - pickup_service:    pickup requests, admin updates, driver activation
    - duplicate_guard:   duplicate-review and repeat-scan lookups
    - review_intake:     public rider scan and review submission
    - ledger:            append-only driver earnings writer
    - reward_dispatcher: BTL coin award for a review
    - task_queue:        durable side-effect tasks and their worker
    - driver_service:    driver dashboard summaries and notifications
    - withdrawal_state:  withdrawal status transition table and driver notices
    - withdrawal_service: balance, driver payout requests, admin processing
"""
