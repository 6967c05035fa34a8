import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from . import models, schemas
from .authz import require_review_author
from .exceptions import DuplicateUser, RecipeNotFound
from .media import StoredImage
from .security import hash_password, verify_password

logger = logging.getLogger("recipeshare.crud")


def _commit(db: Session):
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def get_user(db: Session, user_id: int):
    return db.get(models.User, user_id)


def get_user_by_username(db: Session, username: str):
    return db.query(models.User).filter(models.User.username == username).first()


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, user: schemas.UserCreate):
    if get_user_by_username(db, user.username):
        raise DuplicateUser("username")
    if get_user_by_email(db, user.email):
        raise DuplicateUser("email")
    db_user = models.User(
        username=user.username,
        email=user.email,
        password_hash=hash_password(user.password),
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateUser("username") from e
    db.refresh(db_user)
    logger.info(f"Registered user {db_user.username}")
    return db_user


def authenticate(db: Session, username: str, password: str) -> Optional[models.User]:
    user = get_user_by_username(db, username)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


# ---------------------------------------------------------------------------
# Recipes
# ---------------------------------------------------------------------------

def list_recipes(db: Session):
    return (
        db.query(models.Recipe)
        .options(joinedload(models.Recipe.author), selectinload(models.Recipe.images))
        .order_by(models.Recipe.id)
        .all()
    )


def get_recipe(db: Session, recipe_id: int):
    return db.get(models.Recipe, recipe_id)


def read_recipe(db: Session, recipe_id: int) -> models.Recipe:
    """Load a recipe with its author, images, ingredients and reviewers."""
    recipe = (
        db.query(models.Recipe)
        .options(
            joinedload(models.Recipe.author),
            selectinload(models.Recipe.images),
            selectinload(models.Recipe.ingredients),
            selectinload(models.Recipe.reviews).joinedload(models.Review.author),
        )
        .filter(models.Recipe.id == recipe_id)
        .first()
    )
    if recipe is None:
        raise RecipeNotFound(recipe_id)
    return recipe


def _set_ingredients(db_recipe: models.Recipe, ingredients: List[schemas.IngredientIn]):
    db_recipe.ingredients.clear()
    for ing in ingredients:
        db_recipe.ingredients.append(
            models.Ingredient(name=ing.name, unit=ing.unit, amount=ing.amount)
        )


def _add_images(db_recipe: models.Recipe, images: List[StoredImage]):
    for img in images:
        db_recipe.images.append(models.RecipeImage(url=img.url, filename=img.filename))


def create_recipe(
    db: Session,
    recipe: schemas.RecipeCreate,
    author_id: int,
    images: List[StoredImage] = (),
):
    db_recipe = models.Recipe(
        title=recipe.title,
        instruction=recipe.instruction,
        author_id=author_id,
    )
    _set_ingredients(db_recipe, recipe.ingredients)
    _add_images(db_recipe, list(images))
    db.add(db_recipe)
    _commit(db)
    db.refresh(db_recipe)
    logger.info(f"User {author_id} created recipe {db_recipe.id}")
    return db_recipe


def update_recipe(
    db: Session,
    recipe_id: int,
    recipe: schemas.RecipeUpdate,
    new_images: List[StoredImage],
    media,
):
    """Merge the submission into a recipe, then drop images marked for deletion.

    The author is never touched. Names in ``recipe.delete_images`` that are
    not images of this recipe are ignored. The remaining ones are
    destroyed at the media host before they are removed from the recipe, so a
    failure between those two steps leaves a stale entry behind.
    """
    db_recipe = get_recipe(db, recipe_id)
    if db_recipe is None:
        raise RecipeNotFound(recipe_id)

    db_recipe.title = recipe.title
    db_recipe.instruction = recipe.instruction
    _set_ingredients(db_recipe, recipe.ingredients)
    _add_images(db_recipe, list(new_images))
    _commit(db)

    # only this recipe's own images may be destroyed
    doomed = {i.filename for i in db_recipe.images} & set(recipe.delete_images)
    if doomed:
        for filename in sorted(doomed):
            media.destroy(filename)
        for img in [i for i in db_recipe.images if i.filename in doomed]:
            db_recipe.images.remove(img)
        _commit(db)
        logger.info(f"Removed {len(doomed)} image(s) from recipe {recipe_id}")

    db.refresh(db_recipe)
    return db_recipe


def delete_recipe(db: Session, recipe_id: int):
    """Delete a recipe together with all of its reviews.

    Reviews go first, then the recipe, in one transaction. Any failure rolls
    both back.
    """
    db_recipe = get_recipe(db, recipe_id)
    if db_recipe is None:
        raise RecipeNotFound(recipe_id)
    try:
        removed = (
            db.query(models.Review)
            .filter(models.Review.recipe_id == recipe_id)
            .delete(synchronize_session="fetch")
        )
        db.expire(db_recipe, ["reviews"])
        db.delete(db_recipe)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Deleted recipe {recipe_id} and {removed} review(s)")
    return True


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------

def create_review(db: Session, recipe_id: int, review: schemas.ReviewCreate, author_id: int):
    db_recipe = get_recipe(db, recipe_id)
    if db_recipe is None:
        raise RecipeNotFound(recipe_id)
    db_review = models.Review(body=review.body, author_id=author_id)
    db_recipe.reviews.append(db_review)
    _commit(db)
    db.refresh(db_review)
    return db_review


def delete_review(db: Session, recipe_id: int, review_id: int, actor_id: Optional[int]):
    """Delete one review; it disappears from its recipe's review list too."""
    db_review = require_review_author(db, actor_id, recipe_id, review_id)
    db.delete(db_review)
    _commit(db)
    logger.info(f"User {actor_id} deleted review {review_id} on recipe {recipe_id}")
    return True
