"""
Recipe Share Backend — Saved Recipes Association Table
========================================================

What:  The bookmark edge between a user and a recipe someone else created.
Why one table: "users who saved R" and "recipes saved by U" are two views of
       the same rows, so they can never disagree. The composite primary key
       also stops two concurrent saves from producing a duplicate edge.
Who:   Toggled by SaveService; cleared by RecipeService.delete_recipe.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Table, Uuid, text

from recipeshare.database import Base

saved_recipes = Table(
    "saved_recipes",
    Base.metadata,
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "recipe_id",
        Uuid,
        ForeignKey("recipes.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "saved_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    # Reverse lookup: "who saved this recipe" (counts, delete cascade)
    Index("idx_saved_recipes_recipe_id", "recipe_id"),
)
