"""
Cook Journal Backend — API Routes Package
===========================================

Route Inventory:
    - auth.py:     /api/auth/register, login, logout, me, change-password
    - recipes.py:  /api/recipes CRUD, attempts, choose-best
    - uploads.py:  POST /api/uploads, GET /uploads/{filename}
    - health.py:   GET /api/health

Routes stay thin: extract request data, call a service, shape the response.
"""
