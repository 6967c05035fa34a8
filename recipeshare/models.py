from sqlalchemy import Column, Float, ForeignKey, Integer, String, Text
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship

from .db import Base
from .media import thumbnail_url
from .settings import settings


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(80), unique=True, index=True, nullable=False)
    email = Column(String(200), unique=True, nullable=False)
    password_hash = Column(String(256), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"


class RecipeImage(Base):
    __tablename__ = "recipe_images"
    id = Column(Integer, primary_key=True)
    recipe_id = Column(Integer, ForeignKey("recipes.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    url = Column(String(500), nullable=False)
    filename = Column(String(300), nullable=False)  # deletion key at the media host

    @property
    def thumbnail(self) -> str:
        return thumbnail_url(self.url, settings.thumbnail_width)


class Ingredient(Base):
    __tablename__ = "ingredients"
    id = Column(Integer, primary_key=True)
    recipe_id = Column(Integer, ForeignKey("recipes.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(200), nullable=False)
    unit = Column(String(50), nullable=False)
    amount = Column(Float, nullable=True)


class Review(Base):
    __tablename__ = "reviews"
    id = Column(Integer, primary_key=True, index=True)
    recipe_id = Column(Integer, ForeignKey("recipes.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    body = Column(Text, nullable=False)

    author = relationship("User")
    recipe = relationship("Recipe", back_populates="reviews")


class Recipe(Base):
    __tablename__ = "recipes"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    instruction = Column(Text, nullable=False)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    author = relationship("User")
    # images and ingredients are part of the recipe and go with it
    images = relationship(
        "RecipeImage",
        order_by=RecipeImage.position,
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )
    ingredients = relationship(
        "Ingredient",
        order_by=Ingredient.position,
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )
    # reviews are removed explicitly by crud.delete_recipe, not by an ORM cascade
    reviews = relationship("Review", back_populates="recipe", order_by=Review.id)

    def __repr__(self):
        return f"<Recipe(id={self.id}, title={self.title})>"
