"""
Recipe Share Backend — Recipe Request/Response Schemas
========================================================

What:  Pydantic models for recipe input (drafts, partial changes, list
       filters, save toggle) and output (populated recipe, pages).
Why:   Every recipe write goes through an immutable RecipeDraft: the service
       reads the current row, builds a new draft with the changes applied,
       validates it whole, and writes it in one statement. A half-valid
       recipe can never reach the database.

Wire names:
    Clients send and receive camelCase keys (`prepTime`, `nutritionFacts`)
    and the description as `desc`. Python code uses snake_case names; both
    are accepted on input.
"""

import uuid
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from recipeshare.schemas.common import ResponseModel, id_field

Difficulty = Literal["easy", "medium", "hard"]
SortOrder = Literal["newest", "oldest", "rating", "prepTime", "relevance"]


# ══════════════════════════════════════════════════════════════════════════
# Sub-Documents
# ══════════════════════════════════════════════════════════════════════════


class _Part(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)


class NutritionFact(_Part):
    label: str = Field(min_length=1, max_length=100)
    value: str = Field(min_length=1, max_length=100)


class Ingredient(_Part):
    name: str = Field(min_length=1, max_length=200)
    amount: str = Field(min_length=1, max_length=50)
    unit: str = Field(min_length=1, max_length=50)

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, v: Any) -> Any:
        # Clients send amounts as numbers or strings ("1/2")
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class InstructionStep(_Part):
    step: str = Field(min_length=1, max_length=2000)


# ══════════════════════════════════════════════════════════════════════════
# Input Models
# ══════════════════════════════════════════════════════════════════════════


_INPUT_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    str_strip_whitespace=True,
)


class RecipeDraft(BaseModel):
    """
    A complete, validated recipe ready to be written.

    Frozen: a draft is built once (from the request on create, from the
    current row plus changes on update) and never mutated afterwards.
    """

    model_config = ConfigDict(**_INPUT_CONFIG, frozen=True)

    name: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=500, alias="desc")
    prep_time: int = Field(ge=1, le=10_000, description="Minutes")
    difficulty: Difficulty
    serving: int = Field(ge=1, le=1_000)
    cuisine: str = Field(min_length=1, max_length=100)
    nutrition_facts: List[NutritionFact] = Field(min_length=1)
    ingredients: List[Ingredient] = Field(min_length=1)
    instructions: List[InstructionStep] = Field(min_length=1)

    def columns(self) -> dict:
        """Column values for an INSERT/UPDATE of the recipes table."""
        return self.model_dump(mode="json", by_alias=False)


class RecipeChanges(BaseModel):
    """
    Fields supplied to an update. Absent (None) fields keep their values;
    present list fields must still be non-empty.
    """

    model_config = _INPUT_CONFIG

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500, alias="desc")
    prep_time: Optional[int] = Field(default=None, ge=1, le=10_000)
    difficulty: Optional[Difficulty] = None
    serving: Optional[int] = Field(default=None, ge=1, le=1_000)
    cuisine: Optional[str] = Field(default=None, min_length=1, max_length=100)
    nutrition_facts: Optional[List[NutritionFact]] = Field(default=None, min_length=1)
    ingredients: Optional[List[Ingredient]] = Field(default=None, min_length=1)
    instructions: Optional[List[InstructionStep]] = Field(default=None, min_length=1)

    def supplied(self) -> dict:
        """The fields that were actually supplied, keyed by Python name."""
        return self.model_dump(mode="json", by_alias=False, exclude_none=True)


class RecipeFilters(BaseModel):
    """
    Query of GET /api/v1/recipe. All supplied filters are combined with AND.
    """

    model_config = _INPUT_CONFIG

    search: Optional[str] = Field(default=None, max_length=200)
    difficulty: Optional[Difficulty] = None
    cuisine: Optional[str] = Field(default=None, max_length=100)
    max_prep: Optional[int] = Field(default=None, ge=0)
    min_rating: Optional[float] = Field(default=None, ge=0, le=5)
    sort: SortOrder = "newest"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


class SaveToggleRequest(BaseModel):
    """Body of POST /api/v1/recipe/save."""

    model_config = _INPUT_CONFIG

    recipe_id: Optional[uuid.UUID] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ImageRefOut(ResponseModel):
    public_id: str
    url: str


class CreatorSummary(ResponseModel):
    """The creator fields embedded in every recipe response."""

    id: uuid.UUID = id_field()
    name: str
    username: str
    avatar: ImageRefOut
    location: str
    role: str


class RecipeOut(ResponseModel):
    """
    A recipe with its creator populated and the ids of users who saved it.

    Built from a Recipe row loaded with `creator` and `saved_by`.
    """

    id: uuid.UUID = id_field()
    name: str
    description: str = Field(
        validation_alias=AliasChoices("description", "desc"),
        serialization_alias="desc",
    )
    prep_time: int
    difficulty: str
    serving: int
    cuisine: str
    rating: float
    reviews: int
    comments: int
    nutrition_facts: List[NutritionFact]
    ingredients: List[Ingredient]
    instructions: List[InstructionStep]
    image: ImageRefOut
    created_by: CreatorSummary = Field(
        validation_alias=AliasChoices("creator", "createdBy", "created_by"),
        serialization_alias="createdBy",
    )
    saved_by: List[uuid.UUID] = Field(
        default_factory=list,
        validation_alias=AliasChoices("saved_by", "savedBy"),
        serialization_alias="savedBy",
    )
    created_at: datetime
    updated_at: datetime

    @field_validator("saved_by", mode="before")
    @classmethod
    def user_ids(cls, v: Any) -> Any:
        # ORM rows carry User objects; serialized input carries ids
        return [getattr(item, "id", item) for item in v or []]

    @computed_field(alias="saveCount")
    @property
    def save_count(self) -> int:
        return len(self.saved_by)


class RecipePage(ResponseModel):
    """One page of GET /api/v1/recipe."""

    recipes: List[RecipeOut]
    page: int
    pages: int
    total: int


class SaveToggleResult(ResponseModel):
    is_saved: bool
    save_count: int
