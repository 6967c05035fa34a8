"""Gate for recipe and review submissions.

Every function either returns a typed payload or raises ValidationFailed
with all schema messages joined. Nothing here touches the database or the
media host.
"""

from typing import List, Sequence, Union

from pydantic import BaseModel, ValidationError

from .exceptions import TooManyImages, ValidationFailed
from .media import Upload
from .normalize import normalize_recipe_payload
from .schemas import RecipeCreate, RecipeUpdate, ReviewCreate, UserCreate
from .settings import settings


def error_messages(exc: ValidationError, prefix: str) -> List[str]:
    messages = []
    for err in exc.errors():
        parts = ([prefix] if prefix else []) + [str(p) for p in err["loc"]]
        loc = ".".join(parts)
        messages.append(f'"{loc}" {err["msg"]}')
    return messages


def _validate(model: type[BaseModel], raw: dict, prefix: str):
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise ValidationFailed(error_messages(e, prefix)) from e


def check_image_count(new: int, existing: int = 0, deleting: int = 0) -> None:
    limit = settings.max_images_per_recipe
    if new > limit or existing - deleting + new > limit:
        raise TooManyImages(limit)


def check_image_types(uploads: List[Upload]) -> None:
    allowed = settings.allowed_image_extensions
    bad = [u.original_name for u in uploads if u.extension not in allowed]
    if bad:
        raise ValidationFailed(
            [f'"images" {name} is not one of {", ".join(allowed)}' for name in bad]
        )


def validate_recipe(
    raw: dict,
    uploads: Sequence[Upload] = (),
    *,
    existing_images: int = 0,
    deleting: int = 0,
    update: bool = False,
) -> Union[RecipeCreate, RecipeUpdate]:
    """Normalize and validate a recipe submission.

    Incomplete ingredient rows are removed from ``raw`` first, then the
    upload count is checked, then the schema.
    """
    normalize_recipe_payload(raw)
    uploads = list(uploads)
    check_image_count(len(uploads), existing_images, deleting)
    check_image_types(uploads)
    return _validate(RecipeUpdate if update else RecipeCreate, raw, "recipe")


def validate_review(raw: dict) -> ReviewCreate:
    return _validate(ReviewCreate, raw, "review")


def validate_user(raw: dict) -> UserCreate:
    return _validate(UserCreate, raw, "")
