# Application errors.
#
# Each error knows its HTTP status and user-facing message. The handlers in
# app.py decide whether an error becomes a redirect with a flash message,
# an error page, or (under /api) a JSON body.

from typing import Any, List, Optional


DEFAULT_ERROR_MESSAGE = "Oh No, Something Went Wrong!"


class RecipeShareError(Exception):
    """Base exception for the application.

    Carries a human-readable message, a machine-readable code and the
    HTTP status the boundary should answer with.
    """

    def __init__(
        self,
        message: str = DEFAULT_ERROR_MESSAGE,
        code: str = "RECIPESHARE_ERROR",
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        result = {"detail": self.message, "code": self.code}
        if self.details:
            result["details"] = self.details
        return result


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationFailed(RecipeShareError):
    """A submission failed the schema gate. All messages are joined."""

    def __init__(self, messages: List[str]):
        super().__init__(
            message=",".join(messages),
            code="VALIDATION_ERROR",
            status_code=400,
            details={"errors": list(messages)},
        )
        self.messages = list(messages)


class TooManyImages(ValidationFailed):
    def __init__(self, limit: int):
        super().__init__(
            [f"You can only upload a maximum of {limit} images per recipe."]
        )
        self.code = "TOO_MANY_IMAGES"
        self.details["limit"] = limit


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------

class Forbidden(RecipeShareError):
    """The actor is not allowed to touch the resource.

    `redirect_to` is the safe page to send the user back to.
    """

    def __init__(
        self,
        redirect_to: str = "/recipes",
        message: str = "You do not have permission to do that!",
    ):
        super().__init__(message=message, code="FORBIDDEN", status_code=403)
        self.redirect_to = redirect_to


class LoginRequired(Forbidden):
    def __init__(self, return_to: str = "/recipes"):
        super().__init__(
            redirect_to="/login", message="You must be signed in first!"
        )
        self.code = "LOGIN_REQUIRED"
        self.status_code = 401
        self.return_to = return_to


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

class NotFoundError(RecipeShareError):
    def __init__(
        self, message: str, code: str, details: dict[str, Any], redirect_to: str = "/recipes"
    ):
        super().__init__(
            message=message, code=code, status_code=404, details=details
        )
        self.redirect_to = redirect_to


class RecipeNotFound(NotFoundError):
    def __init__(self, recipe_id: int):
        super().__init__(
            message="Cannot find that recipe!",
            code="RECIPE_NOT_FOUND",
            details={"recipe_id": recipe_id},
        )


class ReviewNotFound(NotFoundError):
    def __init__(self, recipe_id: int, review_id: int):
        super().__init__(
            message="Cannot find that review!",
            code="REVIEW_NOT_FOUND",
            details={"recipe_id": recipe_id, "review_id": review_id},
            redirect_to=f"/recipes/{recipe_id}",
        )


# ---------------------------------------------------------------------------
# Users and media
# ---------------------------------------------------------------------------

class DuplicateUser(RecipeShareError):
    def __init__(self, field: str):
        super().__init__(
            message=f"A user with the given {field} is already registered",
            code="DUPLICATE_USER",
            status_code=409,
            details={"field": field},
        )


class MediaHostError(RecipeShareError):
    def __init__(self, error: str):
        super().__init__(
            message=f"Failed to store image: {error}",
            code="MEDIA_HOST_ERROR",
            status_code=502,
            details={"error": error},
        )
