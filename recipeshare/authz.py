"""Who may change what.

A recipe or review can only be changed by the user recorded as its author.
Lookups happen before the check so that a missing resource and a refused
actor end up as different errors.
"""

import enum
import logging
from typing import Optional, Union

from sqlalchemy.orm import Session

from . import models
from .context import RequestContext
from .exceptions import Forbidden, LoginRequired, RecipeNotFound, ReviewNotFound

logger = logging.getLogger("recipeshare.authz")


class Decision(enum.Enum):
    ALLOW = "allow"
    DENY = "deny"
    NOT_FOUND = "not_found"


def authorize(
    actor_id: Optional[int],
    resource: Union[models.Recipe, models.Review, None],
) -> Decision:
    if resource is None:
        return Decision.NOT_FOUND
    if actor_id is None:
        return Decision.DENY
    if resource.author_id == actor_id:
        return Decision.ALLOW
    return Decision.DENY


def require_login(ctx: RequestContext, return_to: str) -> None:
    if ctx.is_anonymous:
        raise LoginRequired(return_to=return_to)


def require_recipe_author(
    db: Session, ctx: RequestContext, recipe_id: int
) -> models.Recipe:
    recipe = db.get(models.Recipe, recipe_id)
    decision = authorize(ctx.actor_id, recipe)
    if decision is Decision.NOT_FOUND:
        raise RecipeNotFound(recipe_id)
    if decision is Decision.DENY:
        logger.info(f"User {ctx.actor_id} denied on recipe {recipe_id}")
        raise Forbidden(redirect_to=f"/recipes/{recipe_id}")
    return recipe


def find_review(db: Session, recipe_id: int, review_id: int) -> Optional[models.Review]:
    review = db.get(models.Review, review_id)
    # a review addressed through the wrong recipe does not exist there
    if review is None or review.recipe_id != recipe_id:
        return None
    return review


def require_review_author(
    db: Session, actor_id: Optional[int], recipe_id: int, review_id: int
) -> models.Review:
    review = find_review(db, recipe_id, review_id)
    decision = authorize(actor_id, review)
    if decision is Decision.NOT_FOUND:
        raise ReviewNotFound(recipe_id, review_id)
    if decision is Decision.DENY:
        logger.info(f"User {actor_id} denied on review {review_id}")
        raise Forbidden(redirect_to=f"/recipes/{recipe_id}")
    return review
