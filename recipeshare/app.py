import logging
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Tuple
from urllib.parse import parse_qs, urlencode, urlsplit

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from . import crud, schemas
from .authz import require_login, require_recipe_author
from .context import RequestContext
from .db import SessionLocal, init_db
from .exceptions import (
    DEFAULT_ERROR_MESSAGE,
    DuplicateUser,
    Forbidden,
    LoginRequired,
    NotFoundError,
    RecipeShareError,
    TooManyImages,
    ValidationFailed,
)
from .media import LocalMediaHost, Upload, destroy_all, get_media, upload_all
from .security import is_safe_redirect
from .settings import settings
from .validation import validate_recipe, validate_review, validate_user

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("recipeshare")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize DB once at startup
    init_db()
    logger.info(f"Starting {settings.app_name} with media backend {settings.media_backend}")
    yield


class MethodOverrideMiddleware:
    """Let HTML forms send PUT/PATCH/DELETE as ``POST ...?_method=DELETE``."""

    methods = {"PUT", "PATCH", "DELETE"}

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["method"] == "POST":
            query = parse_qs(scope.get("query_string", b"").decode("latin-1"))
            method = (query.get("_method") or [""])[0].upper()
            if method in self.methods:
                scope = dict(scope, method=method)
        await self.app(scope, receive, send)


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(MethodOverrideMiddleware)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    session_cookie=settings.session_cookie,
    max_age=settings.session_max_age,
    https_only=False,
)

base_dir = Path(__file__).resolve().parents[1]
templates = Jinja2Templates(directory=str(base_dir / "templates"))
app.mount("/static", StaticFiles(directory=str(base_dir / "static")), name="static")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_context(request: Request, db: Session = Depends(get_db)) -> RequestContext:
    user_id = request.session.get("user_id")
    if user_id is None:
        return RequestContext()
    user = crud.get_user(db, user_id)
    if user is None:
        # account removed while the cookie was still alive
        request.session.pop("user_id", None)
        request.session.pop("username", None)
        return RequestContext()
    return RequestContext(actor_id=user.id, username=user.username)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

def _push_flashes(request: Request, messages: List[Tuple[str, str]]):
    if not messages:
        return
    flashes = request.session.get("_flashes", [])
    flashes.extend([list(m) for m in messages])
    request.session["_flashes"] = flashes


def redirect(request: Request, url: str, ctx: RequestContext = None) -> RedirectResponse:
    if ctx is not None:
        _push_flashes(request, ctx.messages)
    return RedirectResponse(url, status_code=303)


def render(request: Request, name: str, ctx: RequestContext, status_code: int = 200, **context):
    flashes = request.session.pop("_flashes", []) + [list(m) for m in ctx.messages]
    return templates.TemplateResponse(
        request,
        name,
        {"ctx": ctx, "flashes": flashes, **context},
        status_code=status_code,
    )


def original_url(request: Request) -> str:
    url = request.url.path
    if request.url.query:
        url += "?" + request.url.query
    return url


def back_url(request: Request, default: str = "/recipes") -> str:
    referer = request.headers.get("referer")
    if not referer:
        return default
    parts = urlsplit(referer)
    if parts.netloc and parts.netloc != request.url.netloc:
        return default
    url = parts.path + ("?" + parts.query if parts.query else "")
    return url if is_safe_redirect(url) else default


def _session_context(request: Request) -> RequestContext:
    if "session" not in request.scope:
        return RequestContext()
    return RequestContext(
        actor_id=request.session.get("user_id"),
        username=request.session.get("username"),
    )


def _error_page(request: Request, message: str, status_code: int):
    ctx = _session_context(request)
    flashes = request.session.pop("_flashes", []) if "session" in request.scope else []
    return templates.TemplateResponse(
        request,
        "error.html",
        {"ctx": ctx, "flashes": flashes, "message": message or DEFAULT_ERROR_MESSAGE,
         "status_code": status_code},
        status_code=status_code,
    )


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------

@app.exception_handler(RecipeShareError)
async def handle_recipeshare_error(request: Request, exc: RecipeShareError):
    if request.url.path.startswith("/api"):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    if isinstance(exc, LoginRequired):
        _push_flashes(request, [("error", exc.message)])
        return RedirectResponse(
            f"/login?{urlencode({'return_to': exc.return_to})}", status_code=303
        )
    if isinstance(exc, Forbidden):
        _push_flashes(request, [("error", exc.message)])
        return RedirectResponse(exc.redirect_to, status_code=303)
    if isinstance(exc, NotFoundError):
        _push_flashes(request, [("error", exc.message)])
        return RedirectResponse(exc.redirect_to, status_code=303)
    if isinstance(exc, TooManyImages):
        _push_flashes(request, [("error", exc.message)])
        return RedirectResponse(back_url(request), status_code=303)
    if isinstance(exc, DuplicateUser):
        _push_flashes(request, [("error", exc.message)])
        return RedirectResponse("/register", status_code=303)

    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    return _error_page(request, exc.message, exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    message = "Page Not Found" if exc.status_code == 404 else str(exc.detail)
    if request.url.path.startswith("/api"):
        return JSONResponse(status_code=exc.status_code, content={"detail": message})
    return _error_page(request, message, exc.status_code)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    if request.url.path.startswith("/api"):
        return JSONResponse(status_code=422, content={"detail": exc.errors()})
    return _error_page(request, "Page Not Found", 404)


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception(f"Unexpected error: {exc}")
    if request.url.path.startswith("/api"):
        return JSONResponse(
            status_code=500,
            content={"detail": DEFAULT_ERROR_MESSAGE, "code": "INTERNAL_ERROR"},
        )
    return _error_page(request, DEFAULT_ERROR_MESSAGE, 500)


# ---------------------------------------------------------------------------
# Forms
# ---------------------------------------------------------------------------

def _amount(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


async def recipe_form(request: Request) -> Tuple[dict, List[Upload]]:
    """Read the recipe form into a raw payload and the attached images."""
    form = await request.form()
    names = form.getlist("ingredient_name")
    units = form.getlist("ingredient_unit")
    amounts = form.getlist("ingredient_amount")
    ingredients = []
    for i, name in enumerate(names):
        ingredients.append({
            "name": name,
            "unit": units[i] if i < len(units) else "",
            "amount": _amount(amounts[i] if i < len(amounts) else None),
        })
    raw = {
        "title": form.get("title", ""),
        "instruction": form.get("instruction", ""),
        "ingredients": ingredients,
        "delete_images": form.getlist("delete_images"),
    }
    uploads = []
    for f in form.getlist("images"):
        # an empty file input still posts a part without a filename
        if not isinstance(f, UploadFile) or not f.filename:
            continue
        uploads.append(Upload(f.filename, f.content_type or "", await f.read()))
    return raw, uploads


async def plain_form(request: Request) -> dict:
    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

@app.get("/", response_class=HTMLResponse)
def home(request: Request, ctx: RequestContext = Depends(get_context)):
    return render(request, "home.html", ctx)


@app.get("/register", response_class=HTMLResponse)
def register_form(request: Request, ctx: RequestContext = Depends(get_context)):
    return render(request, "users/register.html", ctx)


@app.post("/register")
def register(
    request: Request,
    form: dict = Depends(plain_form),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    try:
        user = crud.create_user(db, validate_user(form))
    except (ValidationFailed, DuplicateUser) as e:
        ctx.error(e.message)
        return redirect(request, "/register", ctx)
    request.session["user_id"] = user.id
    request.session["username"] = user.username
    ctx.success(f"Welcome to {settings.app_name}!")
    return redirect(request, "/recipes", ctx)


@app.get("/login", response_class=HTMLResponse)
def login_form(request: Request, return_to: str = "", ctx: RequestContext = Depends(get_context)):
    return render(request, "users/login.html", ctx, return_to=return_to)


@app.post("/login")
def login(
    request: Request,
    form: dict = Depends(plain_form),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    return_to = form.get("return_to", "")
    user = crud.authenticate(db, form.get("username", ""), form.get("password", ""))
    if user is None:
        ctx.error("Password or username is incorrect")
        target = "/login"
        if return_to:
            target += "?" + urlencode({"return_to": return_to})
        return redirect(request, target, ctx)
    request.session["user_id"] = user.id
    request.session["username"] = user.username
    ctx.success("Welcome back!")
    return redirect(request, return_to if is_safe_redirect(return_to) else "/recipes", ctx)


@app.get("/logout")
def logout(request: Request, ctx: RequestContext = Depends(get_context)):
    request.session.pop("user_id", None)
    request.session.pop("username", None)
    ctx.success("Goodbye!")
    return redirect(request, "/recipes", ctx)


# ---------------------------------------------------------------------------
# Recipes
# ---------------------------------------------------------------------------

@app.get("/recipes", response_class=HTMLResponse)
def index(request: Request, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_context)):
    recipes = crud.list_recipes(db)
    return render(request, "recipes/index.html", ctx, recipes=recipes)


@app.get("/recipes/new", response_class=HTMLResponse)
def new_recipe_form(request: Request, ctx: RequestContext = Depends(get_context)):
    require_login(ctx, original_url(request))
    return render(request, "recipes/new.html", ctx, max_images=settings.max_images_per_recipe)


@app.post("/recipes")
def create_recipe(
    request: Request,
    submission: Tuple[dict, List[Upload]] = Depends(recipe_form),
    db: Session = Depends(get_db),
    media=Depends(get_media),
    ctx: RequestContext = Depends(get_context),
):
    require_login(ctx, original_url(request))
    raw, uploads = submission
    payload = validate_recipe(raw, uploads)
    images = upload_all(media, uploads)
    try:
        recipe = crud.create_recipe(db, payload, ctx.actor_id, images)
    except Exception:
        destroy_all(media, [img.filename for img in images])
        raise
    ctx.success("Successfully made a new recipe!")
    return redirect(request, f"/recipes/{recipe.id}", ctx)


@app.get("/recipes/{recipe_id}", response_class=HTMLResponse)
def show_recipe(
    request: Request,
    recipe_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    recipe = crud.read_recipe(db, recipe_id)
    return render(request, "recipes/show.html", ctx, recipe=recipe)


@app.get("/recipes/{recipe_id}/edit", response_class=HTMLResponse)
def edit_recipe_form(
    request: Request,
    recipe_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    require_login(ctx, original_url(request))
    recipe = require_recipe_author(db, ctx, recipe_id)
    return render(
        request, "recipes/edit.html", ctx,
        recipe=recipe, max_images=settings.max_images_per_recipe,
    )


@app.put("/recipes/{recipe_id}")
def update_recipe(
    request: Request,
    recipe_id: int,
    submission: Tuple[dict, List[Upload]] = Depends(recipe_form),
    db: Session = Depends(get_db),
    media=Depends(get_media),
    ctx: RequestContext = Depends(get_context),
):
    require_login(ctx, original_url(request))
    recipe = require_recipe_author(db, ctx, recipe_id)
    raw, uploads = submission
    existing = [img.filename for img in recipe.images]
    deleting = len(set(raw["delete_images"]) & set(existing))
    payload = validate_recipe(
        raw, uploads, existing_images=len(existing), deleting=deleting, update=True
    )
    images = upload_all(media, uploads)
    try:
        recipe = crud.update_recipe(db, recipe_id, payload, images, media)
    except Exception:
        destroy_all(media, [img.filename for img in images])
        raise
    ctx.success("Successfully updated recipe!")
    return redirect(request, f"/recipes/{recipe.id}", ctx)


@app.delete("/recipes/{recipe_id}")
def delete_recipe(
    request: Request,
    recipe_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    require_login(ctx, original_url(request))
    require_recipe_author(db, ctx, recipe_id)
    crud.delete_recipe(db, recipe_id)
    ctx.success("Successfully deleted recipe")
    return redirect(request, "/recipes", ctx)


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------

@app.post("/recipes/{recipe_id}/reviews")
def create_review(
    request: Request,
    recipe_id: int,
    form: dict = Depends(plain_form),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    require_login(ctx, original_url(request))
    payload = validate_review({"body": form.get("body", "")})
    crud.create_review(db, recipe_id, payload, ctx.actor_id)
    ctx.success("Created new review!")
    return redirect(request, f"/recipes/{recipe_id}", ctx)


@app.delete("/recipes/{recipe_id}/reviews/{review_id}")
def delete_review(
    request: Request,
    recipe_id: int,
    review_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_context),
):
    require_login(ctx, original_url(request))
    crud.delete_review(db, recipe_id, review_id, ctx.actor_id)
    ctx.success("Successfully deleted review")
    return redirect(request, f"/recipes/{recipe_id}", ctx)


# ---------------------------------------------------------------------------
# Local media
# ---------------------------------------------------------------------------

_THUMBNAIL = re.compile(r"^w_\d+/(.+)$")


@app.get("/media/upload/{filename:path}")
def media_file(filename: str, media=Depends(get_media)):
    if not isinstance(media, LocalMediaHost):
        raise HTTPException(status_code=404)
    # no resizing locally; thumbnails are served from the original file
    m = _THUMBNAIL.match(filename)
    if m:
        filename = m.group(1)
    path = media.open(filename)
    if path is None:
        raise HTTPException(status_code=404)
    return FileResponse(str(path))


# ---------------------------------------------------------------------------
# JSON API
# ---------------------------------------------------------------------------

@app.get("/api/recipes", response_model=List[schemas.RecipeSummary])
def api_list_recipes(db: Session = Depends(get_db)):
    return crud.list_recipes(db)


@app.get("/api/recipes/{recipe_id}", response_model=schemas.Recipe)
def api_get_recipe(recipe_id: int, db: Session = Depends(get_db)):
    return crud.read_recipe(db, recipe_id)
