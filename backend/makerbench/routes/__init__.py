# Routes package init
"""
MakerBench Backend — API Routes Package
=========================================

What:  HTTP route handlers that accept requests and return responses.
How:   Each route module handles a specific resource or action.

Route Inventory:
    - bookmarks.py:  GET  /api/bookmarks               (approved, paginated)
                     GET  /api/bookmarks/search        (q, tags, limit, offset)
                     POST /api/bookmarks               (submit for review)
    - tags.py:       GET  /api/tags                    (list / name filter)
                     GET  /api/tags/popular            (tag cloud)
    - admin.py:      GET  /api/admin/bookmarks         (moderation queue)
                     PATCH /api/admin/bookmarks/{id}   (approve / reject)
    - files.py:      GET  /api/files/{path}            (stored screenshots)
    - health.py:     GET  /health                      (service health check)

Design Principle:
    Routes are THIN. They parse the request, call one service method and
    wrap the result in the success envelope. Errors are raised as
    MakerBenchError subclasses and rendered by the handlers in main.py.
"""
