import logging
import os
import re
from contextlib import asynccontextmanager
from pathlib import Path

import auth
import crud
import database
import models
import schemas
import shortener
from dotenv import load_dotenv
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from fastapi.security import OAuth2PasswordRequestForm
from shortener import LinkError

load_dotenv(Path(__file__).parent.parent / ".env")

ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")

# --- Logging ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
logger = logging.getLogger("shortlinks")


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = database.build_engine()
    models.Base.metadata.create_all(bind=engine)
    app.state.session_factory = database.make_session_factory(engine)
    logger.info("Database ready (%s)", ENVIRONMENT)
    yield
    engine.dispose()


app = FastAPI(
    title="Short Links",
    description="Shorten URLs, pick custom aliases and count clicks per link.",
    version="1.0.0",
    lifespan=lifespan,
)

# --- CORS (allow frontend dev servers, etc.) ---
origins = ["*"] if ENVIRONMENT == "dev" else [
    os.getenv("PUBLIC_BASE_URL", "http://localhost:8000"),
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# status code and message for each allocation failure
ERROR_RESPONSES = {
    LinkError.INVALID_TARGET_URL: (400, "Target URL must be an absolute http(s) URL"),
    LinkError.INVALID_ALIAS: (400, "Alias must be 2-20 characters of letters, digits, '_' or '-'"),
    LinkError.RESERVED_ALIAS: (400, "This alias is reserved"),
    LinkError.ALIAS_TAKEN: (409, "Custom alias already taken"),
    LinkError.ALLOCATION_EXHAUSTED: (503, "Could not generate unique short URL, try again"),
}

CODE_PATTERN = re.compile(r"[A-Za-z0-9_-]{2,32}")


# Small config for frontend to know public base URL
@app.get("/config", include_in_schema=False)
def get_config(request: Request):
    base = os.getenv("PUBLIC_BASE_URL") or str(request.base_url).rstrip("/")
    return {"public_base_url": base}

# Health check (useful for uptime monitors & load balancers)
@app.get("/health", include_in_schema=False)
def health():
    return {"status": "ok", "env": ENVIRONMENT}

# ---------- Accounts ----------
@app.post("/register", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def register(user_in: schemas.UserCreate, db=Depends(database.get_db)):
    email = user_in.email.strip().lower()
    if len(user_in.password.encode()) > 72:
        raise HTTPException(status_code=400, detail="Password is too long")
    if crud.get_user_by_email(db, email):
        raise HTTPException(status_code=400, detail="Email already exists")
    user = crud.create_user(db, user_in.name.strip(), email, auth.hash_password(user_in.password))
    if user is None:
        raise HTTPException(status_code=400, detail="Email already exists")
    logger.info("Registered user %s", user.id)
    return user

@app.post("/login", response_model=schemas.Token)
def login(response: Response, form_data: OAuth2PasswordRequestForm = Depends(), db=Depends(database.get_db)):
    user = crud.get_user_by_email(db, form_data.username.strip().lower())
    if not user or not auth.verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    token = auth.create_access_token({"sub": str(user.id)})
    # Only set secure cookie if HTTPS is configured
    is_https = os.getenv("PUBLIC_BASE_URL", "").startswith("https://")
    response.set_cookie(
        key=auth.COOKIE_NAME, value=token,
        httponly=True, samesite="lax", secure=is_https, path="/",
        max_age=auth.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return {"access_token": token, "token_type": "bearer"}

@app.post("/logout", include_in_schema=False)
def logout(response: Response):
    response.delete_cookie(auth.COOKIE_NAME, path="/")
    return {"ok": True}

# ---------- Links ----------
@app.post("/shorten", response_model=schemas.LinkOut, status_code=status.HTTP_201_CREATED)
def create_link(link_in: schemas.LinkCreate, db=Depends(database.get_db), user=Depends(auth.get_current_user)):
    if crud.get_user(db, user) is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    alias = (link_in.code or "").strip()
    target_url = link_in.target_url.strip()
    result = shortener.allocate(db, alias or None, bool(alias), target_url, user)
    if isinstance(result, LinkError):
        status_code, detail = ERROR_RESPONSES[result]
        logger.info("Rejected link by=%s alias=%r: %s", user, alias, result.value)
        raise HTTPException(status_code=status_code, detail=detail)
    logger.info("Created link: code=%s target=%s by=%s", result.code, result.target_url, user)
    return result

@app.delete("/delete/{code}", response_model=schemas.MessageOut)
def delete_link(code: str, db=Depends(database.get_db), user=Depends(auth.get_current_user)):
    if not crud.delete_link(db, code, user):
        raise HTTPException(status_code=404, detail="Link not found")
    logger.info("Deleted link %s by=%s", code, user)
    return {"ok": True, "detail": f"Link '{code}' deleted"}

@app.get("/links", response_model=schemas.PaginatedLinks)
def list_links(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db=Depends(database.get_db),
    user=Depends(auth.get_current_user),
):
    items = crud.get_links_by_owner(db, user, skip=skip, limit=limit)
    total = crud.count_links_by_owner(db, user)
    return {"items": items, "total": total, "skip": skip, "limit": limit}

@app.get("/dashboard", response_model=schemas.Dashboard)
def dashboard(db=Depends(database.get_db), user=Depends(auth.get_current_user)):
    items = crud.get_links_by_owner(db, user, limit=None)
    total_clicks = crud.total_clicks_by_owner(db, user)
    total_links = len(items)
    click_rate = round(total_clicks / total_links, 1) if total_links else 0
    return {
        "items": items,
        "total_links": total_links,
        "total_clicks": total_clicks,
        "click_rate": click_rate,
    }

# Redirect /{code}; registered last so it never shadows the routes above
@app.get("/{code}", include_in_schema=False)
def redirect_code(
    code: str,
    background_tasks: BackgroundTasks,
    db=Depends(database.get_db),
    session_factory=Depends(database.get_session_factory),
):
    if code.lower() in shortener.RESERVED or not CODE_PATTERN.fullmatch(code):
        raise HTTPException(status_code=404, detail="Not found")
    target = shortener.lookup_target(db, code)
    if target is None:
        raise HTTPException(status_code=404, detail="Not found")
    # Counted after the response is flushed; the server still awaits the task.
    background_tasks.add_task(shortener.record_click, session_factory, code)
    return RedirectResponse(url=target, status_code=307)
