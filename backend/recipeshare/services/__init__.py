# Services package init
"""
Recipe Share Backend — Services Layer
=======================================

Service Inventory:
    - handles:        unique username allocation
    - validation:     pydantic errors → ValidationError with client-facing wording
    - ImageService:   Pillow optimization of uploaded photos
    - ImageStore:     upload/delete of optimized images (LocalImageStore)
    - ImageCleanup:   retried, logged, never-raising discard of stored images
    - RecipeService:  recipe create / update / delete / read / list
    - SaveService:    save-recipe toggle
    - AuthService:    sign-up and sign-in
    - UserService:    profiles, admin user list, saved and shared recipes

Write operations receive a UnitOfWork and do all their database work inside
one `uow.run(body)` call; read operations receive a plain AsyncSession.
"""
