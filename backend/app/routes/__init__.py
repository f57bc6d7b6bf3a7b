"""
Jotter Backend — API Routes Package
===================================

Route Inventory:
    - entries.py: GET/POST /api/entries, DELETE /api/entries/{id}
    - health.py:  GET /api/health

Routes stay thin: they unpack the request, call EntryService and shape the
response. Errors travel as exceptions to the handlers in main.py.
"""
