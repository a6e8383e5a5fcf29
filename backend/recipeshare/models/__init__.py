"""ORM models. Importing this package registers every table on Base.metadata."""

from recipeshare.models.image import ImageRef
from recipeshare.models.saved_recipe import saved_recipes
from recipeshare.models.user import User
from recipeshare.models.recipe import Recipe, search_vector

__all__ = ["ImageRef", "Recipe", "User", "saved_recipes", "search_vector"]
