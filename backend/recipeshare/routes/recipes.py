"""
Recipe Share Backend — Recipe Routes
======================================

What:  HTTP surface of the recipe lifecycle.

    POST   /api/v1/recipe/create         multipart form + image   (auth) → 201
    GET    /api/v1/recipe                filtered, paginated list (public)
    GET    /api/v1/recipe/{id}           one recipe, populated    (public)
    PUT    /api/v1/recipe/update/{id}    multipart form [+ image] (creator/admin)
    DELETE /api/v1/recipe/delete/{id}                             (creator/admin)
    POST   /api/v1/recipe/save           {"recipeId": ...}        (auth) toggle

Form Decoding:
    Create and update arrive as multipart/form-data so the image can ride
    along. The three list fields (nutritionFacts, ingredients, instructions)
    are JSON-encoded strings inside the form; they are decoded here, so the
    services only ever see real lists. Blank form fields count as absent.
"""

import json
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from recipeshare.database import UnitOfWork, get_db_session, get_unit_of_work
from recipeshare.deps import (
    get_current_identity,
    get_recipe_service,
    get_save_service,
)
from recipeshare.exceptions import ValidationError
from recipeshare.schemas.common import ApiResponse, ErrorResponse
from recipeshare.schemas.recipe import (
    Difficulty,
    RecipeFilters,
    RecipeOut,
    RecipePage,
    SaveToggleRequest,
    SaveToggleResult,
    SortOrder,
)
from recipeshare.security import Identity
from recipeshare.services.image_service import ImagePayload
from recipeshare.services.recipe_service import RecipeService
from recipeshare.services.save_service import SaveService
from recipeshare.services.validation import ARRAY_LABELS, build

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/recipe", tags=["Recipes"])

_ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


# ══════════════════════════════════════════════════════════════════════════
# Form Helpers
# ══════════════════════════════════════════════════════════════════════════


def decode_json_array(raw: Optional[str], field: str) -> Optional[list]:
    """
    Decodes a JSON-encoded array form field.

    Returns None when the field is absent or blank. An empty array is
    returned as-is; rejecting it is the draft's job.

    Raises:
        ValidationError: malformed JSON or a value that is not an array
    """
    if raw is None or not raw.strip():
        return None
    label = ARRAY_LABELS.get(field, field)
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError(f"{label} must be valid JSON", field=field)
    if not isinstance(value, list):
        raise ValidationError(f"{label} must be a non-empty array", field=field)
    return value


async def recipe_form(
    name: Optional[str] = Form(None),
    desc: Optional[str] = Form(None),
    prep_time: Optional[str] = Form(None, alias="prepTime"),
    difficulty: Optional[str] = Form(None),
    serving: Optional[str] = Form(None),
    cuisine: Optional[str] = Form(None),
    nutrition_facts: Optional[str] = Form(None, alias="nutritionFacts"),
    ingredients: Optional[str] = Form(None, alias="ingredients"),
    instructions: Optional[str] = Form(None, alias="instructions"),
) -> Dict[str, Any]:
    """Supplied recipe fields keyed by wire name, arrays decoded."""
    scalars = {
        "name": name,
        "desc": desc,
        "prepTime": prep_time,
        "difficulty": difficulty,
        "serving": serving,
        "cuisine": cuisine,
    }
    fields: Dict[str, Any] = {
        key: value for key, value in scalars.items()
        if value is not None and value.strip()
    }
    arrays = {
        "nutritionFacts": nutrition_facts,
        "ingredients": ingredients,
        "instructions": instructions,
    }
    for key, raw in arrays.items():
        decoded = decode_json_array(raw, key)
        if decoded is not None:
            fields[key] = decoded
    return fields


async def image_upload(
    image: Optional[UploadFile] = File(None, description="Recipe photo (JPEG, PNG, WebP or GIF)"),
) -> Optional[ImagePayload]:
    if image is None or not image.filename:
        return None
    content = await image.read()
    return ImagePayload(
        filename=image.filename,
        content=content,
        content_type=image.content_type,
    )


# ══════════════════════════════════════════════════════════════════════════
# Routes
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/create",
    status_code=201,
    response_model=ApiResponse[RecipeOut],
    responses=_ERRORS,
    summary="Create a recipe",
)
async def create_recipe(
    identity: Identity = Depends(get_current_identity),
    fields: Dict[str, Any] = Depends(recipe_form),
    image: Optional[ImagePayload] = Depends(image_upload),
    uow: UnitOfWork = Depends(get_unit_of_work),
    service: RecipeService = Depends(get_recipe_service),
):
    recipe = await service.create_recipe(uow, identity, fields, image)
    return ApiResponse(message="Recipe created successfully", data=recipe)


@router.get(
    "",
    response_model=ApiResponse[RecipePage],
    responses={400: {"model": ErrorResponse}},
    summary="List recipes",
)
async def list_recipes(
    search: Optional[str] = Query(None),
    difficulty: Optional[Difficulty] = Query(None),
    cuisine: Optional[str] = Query(None),
    max_prep: Optional[int] = Query(None, alias="maxPrep"),
    min_rating: Optional[float] = Query(None, alias="minRating"),
    sort: SortOrder = Query("newest"),
    page: int = Query(1),
    limit: int = Query(10),
    db: AsyncSession = Depends(get_db_session),
    service: RecipeService = Depends(get_recipe_service),
):
    filters = build(
        RecipeFilters,
        {
            "search": search,
            "difficulty": difficulty,
            "cuisine": cuisine,
            "max_prep": max_prep,
            "min_rating": min_rating,
            "sort": sort,
            "page": page,
            "limit": limit,
        },
    )
    result = await service.list_recipes(db, filters)
    return ApiResponse(message="Recipes fetched successfully", data=result)


@router.get(
    "/{recipe_id}",
    response_model=ApiResponse[RecipeOut],
    responses={404: {"model": ErrorResponse}},
    summary="Fetch one recipe",
)
async def get_recipe(
    recipe_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
    service: RecipeService = Depends(get_recipe_service),
):
    recipe = await service.get_recipe(db, recipe_id)
    return ApiResponse(message="Recipe fetched successfully", data=recipe)


@router.put(
    "/update/{recipe_id}",
    response_model=ApiResponse[RecipeOut],
    responses=_ERRORS,
    summary="Update a recipe",
)
async def update_recipe(
    recipe_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_current_identity),
    fields: Dict[str, Any] = Depends(recipe_form),
    image: Optional[ImagePayload] = Depends(image_upload),
    uow: UnitOfWork = Depends(get_unit_of_work),
    service: RecipeService = Depends(get_recipe_service),
):
    recipe = await service.update_recipe(
        uow,
        identity,
        recipe_id,
        fields,
        image,
        defer=background_tasks.add_task,
    )
    return ApiResponse(message="Recipe updated successfully", data=recipe)


@router.delete(
    "/delete/{recipe_id}",
    response_model=ApiResponse[None],
    responses=_ERRORS,
    summary="Delete a recipe",
)
async def delete_recipe(
    recipe_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_current_identity),
    uow: UnitOfWork = Depends(get_unit_of_work),
    service: RecipeService = Depends(get_recipe_service),
):
    await service.delete_recipe(uow, identity, recipe_id, defer=background_tasks.add_task)
    return ApiResponse(message="Recipe deleted successfully")


@router.post(
    "/save",
    response_model=ApiResponse[SaveToggleResult],
    responses=_ERRORS,
    summary="Save or unsave a recipe",
)
async def toggle_save(
    body: Optional[SaveToggleRequest] = None,
    identity: Identity = Depends(get_current_identity),
    uow: UnitOfWork = Depends(get_unit_of_work),
    service: SaveService = Depends(get_save_service),
):
    result = await service.toggle(uow, identity, body.recipe_id if body else None)
    message = "Recipe saved successfully" if result.is_saved else "Recipe unsaved successfully"
    return ApiResponse(message=message, data=result)
