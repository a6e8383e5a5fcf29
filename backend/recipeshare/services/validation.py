"""
Recipe Share Backend — Input Validation Helpers
=================================================

What:  Builds Pydantic input models and converts their errors into the
       application's ValidationError.
Why:   Clients display `message` directly. Pydantic's error list is precise
       but not readable, so the first problem is restated in the wording the
       frontend already knows: "Missing required fields: desc, prepTime",
       "Ingredients must be a non-empty array".
"""

from typing import Any, List, Mapping, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from recipeshare.exceptions import ValidationError

M = TypeVar("M", bound=BaseModel)

# Wire name → label used in "<label> must be a non-empty array"
ARRAY_LABELS = {
    "nutritionFacts": "Nutrition facts",
    "ingredients": "Ingredients",
    "instructions": "Instructions",
}

_MISSING_TYPES = {"missing", "string_too_short"}
_ARRAY_TYPES = {"too_short", "list_type"}


def build(model: Type[M], data: Mapping[str, Any]) -> M:
    """
    Validates `data` into `model`.

    Raises:
        ValidationError: describing the most relevant problem
    """
    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as exc:
        raise to_validation_error(model, exc) from exc


def to_validation_error(model: Type[BaseModel], exc: PydanticValidationError) -> ValidationError:
    """
    Picks the message for a failed validation, in this order: missing fields
    (all of them, in declaration order), empty or non-list arrays, then the
    first remaining error.
    """
    wire_names = _wire_names(model)
    order = list(wire_names.values())

    missing: List[str] = []
    arrays: List[str] = []
    other = []
    for err in exc.errors():
        loc = err.get("loc", ())
        if not loc:
            other.append(("", err))
            continue
        field = wire_names.get(str(loc[0]), str(loc[0]))
        kind = err.get("type", "")
        if len(loc) == 1 and field in ARRAY_LABELS and kind in _ARRAY_TYPES:
            arrays.append(field)
        elif len(loc) == 1 and kind in _MISSING_TYPES:
            missing.append(field)
        else:
            other.append((_format_loc(field, loc[1:]), err))

    if missing:
        missing.sort(key=lambda f: order.index(f) if f in order else len(order))
        return ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            field=missing[0],
            context={"fields": missing},
        )
    if arrays:
        field = arrays[0]
        return ValidationError(f"{ARRAY_LABELS[field]} must be a non-empty array", field=field)

    path, err = other[0]
    return ValidationError(
        f"Invalid {path or 'input'}: {err.get('msg', 'invalid value')}",
        field=path or None,
    )


def _wire_names(model: Type[BaseModel]) -> dict:
    """Maps both Python names and aliases of `model`'s fields to the alias."""
    names = {}
    for name, info in model.model_fields.items():
        wire = info.alias or name
        names[name] = wire
        names[wire] = wire
    return names


def _format_loc(field: str, rest) -> str:
    path = field
    for part in rest:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path
