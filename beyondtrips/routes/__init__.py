# Routes package init
"""
Beyond Trips Backend — API Routes Package
=========================================

What:  HTTP route handlers. Routes stay thin: parse the request, resolve the
       caller, call one service, shape the response.

Route Inventory:
    - rider.py:    POST /api/public/rider/scan-magazine
                   POST /api/public/rider/submit-review
    - pickups.py:  POST/GET /api/magazine-pickups, GET/PATCH /api/magazine-pickups/{id}
    - driver.py:   POST /api/driver/magazines/activate
                   GET  /api/driver/btl-coins, /ratings/summary, /earnings/summary
                   GET  /api/driver/notifications (+ read, read-all)
    - admin.py:    GET  /api/admin/tasks, POST /api/admin/tasks/{id}/retry
    - health.py:   GET  /health
"""
