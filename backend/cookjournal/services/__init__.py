"""
Cook Journal Backend — Services Layer
=======================================

Business rules between the routes (HTTP) and the models (persistence).

Service Inventory:
    - AuthService:    accounts, sessions, profile, password, account deletion
    - RecipeService:  recipe CRUD, ownership, best-attempt invariant, cascade
    - AttemptService: append-only attempts per recipe
    - UploadService:  image normalization to a square WebP and storage
    - password:       passlib bcrypt hashing helpers

Services only flush(); the request's transaction is committed by
database.get_db_session().
"""
