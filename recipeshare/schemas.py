from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------

class IngredientIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, json_schema_extra={"example": "Salt"})
    unit: str = Field(..., min_length=1, json_schema_extra={"example": "tsp"})
    amount: Optional[float] = Field(default=None, ge=0)


class RecipeBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(
        ..., min_length=1, json_schema_extra={"example": "Simple Pancakes"}
    )
    instruction: str = Field(
        ...,
        min_length=1,
        json_schema_extra={"example": "Mix, rest for ten minutes, fry."},
    )
    ingredients: List[IngredientIn] = Field(default_factory=list)


class RecipeCreate(RecipeBase):
    pass


class RecipeUpdate(RecipeBase):
    # filenames of stored images to remove
    delete_images: List[str] = Field(default_factory=list)


class ReviewCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    body: str = Field(..., min_length=1)


class UserCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(..., min_length=1, max_length=80)
    email: str = Field(..., min_length=3, max_length=200, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Read models for the JSON API
# ---------------------------------------------------------------------------

class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str


class Image(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    url: str
    filename: str
    thumbnail: str


class Ingredient(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    unit: str
    amount: Optional[float] = None


class Review(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    body: str
    author: User


class RecipeSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    instruction: str
    images: List[Image] = []
    ingredients: List[Ingredient] = []
    author: User


class Recipe(RecipeSummary):
    reviews: List[Review] = []
