"""Short-code allocation and redirect counting.

Functions here return a ``LinkError`` member instead of raising, so every
caller has to decide what each outcome means for its own response.
"""
import logging
import re
import secrets
import string
from enum import Enum
from urllib.parse import urlparse

import crud
import models
import validators
from sqlalchemy.orm import Session

logger = logging.getLogger("shortlinks.core")

ALPHABET = string.ascii_letters + string.digits
CODE_LENGTH = 6
MAX_ATTEMPTS = 5
MAX_URL_LENGTH = 2048

ALIAS_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
ALIAS_MIN_LENGTH = 2
ALIAS_MAX_LENGTH = 20

# Anything the app routes statically must never be handed out as a code.
RESERVED = {
    "api", "admin", "www", "login", "logout", "register",
    "shorten", "links", "dashboard", "delete", "config", "health",
    "docs", "redoc", "openapi.json", "static", "favicon.ico",
}


class LinkError(str, Enum):
    INVALID_TARGET_URL = "invalid_target_url"
    INVALID_ALIAS = "invalid_alias"
    RESERVED_ALIAS = "reserved_alias"
    ALIAS_TAKEN = "alias_taken"
    ALLOCATION_EXHAUSTED = "allocation_exhausted"
    NOT_FOUND = "not_found"


def generate_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def validate_alias(alias: str) -> LinkError | None:
    """Check a custom alias against the naming policy. Availability is not checked here."""
    if not ALIAS_MIN_LENGTH <= len(alias) <= ALIAS_MAX_LENGTH:
        return LinkError.INVALID_ALIAS
    if not ALIAS_PATTERN.fullmatch(alias):
        return LinkError.INVALID_ALIAS
    if alias.lower() in RESERVED:
        return LinkError.RESERVED_ALIAS
    return None


def validate_target_url(url: str) -> LinkError | None:
    if not url or len(url) > MAX_URL_LENGTH:
        return LinkError.INVALID_TARGET_URL
    if not validators.url(url):
        return LinkError.INVALID_TARGET_URL
    if urlparse(url).scheme not in ("http", "https"):
        return LinkError.INVALID_TARGET_URL
    return None


def _claim_alias(db: Session, alias: str, target_url: str, owner_id: int) -> models.ShortLink | LinkError:
    error = validate_alias(alias)
    if error:
        return error
    if crud.get_link(db, alias):
        return LinkError.ALIAS_TAKEN
    link = crud.create_link(db, alias, target_url, owner_id)
    if link is None:
        # Lost a race with a concurrent claim; the unique index decided.
        return LinkError.ALIAS_TAKEN
    return link


def _claim_random(db: Session, target_url: str, owner_id: int) -> models.ShortLink | LinkError:
    for attempt in range(1, MAX_ATTEMPTS + 1):
        candidate = generate_code()
        if candidate.lower() in RESERVED or crud.get_link(db, candidate):
            logger.debug("Code collision on attempt %d: %s", attempt, candidate)
            continue
        link = crud.create_link(db, candidate, target_url, owner_id)
        if link is not None:
            return link
        logger.debug("Code %s claimed concurrently on attempt %d", candidate, attempt)
    logger.warning("Gave up allocating a code after %d attempts", MAX_ATTEMPTS)
    return LinkError.ALLOCATION_EXHAUSTED


def allocate(
    db: Session,
    candidate: str | None,
    is_custom: bool,
    target_url: str,
    owner_id: int,
) -> models.ShortLink | LinkError:
    """Claim a short code for ``target_url`` and persist the link.

    With ``is_custom`` the caller's ``candidate`` is validated and claimed as
    is; otherwise random codes are tried up to ``MAX_ATTEMPTS`` times. A
    returned link has already been committed.
    """
    error = validate_target_url(target_url)
    if error:
        return error
    if is_custom:
        return _claim_alias(db, candidate or "", target_url, owner_id)
    return _claim_random(db, target_url, owner_id)


def lookup_target(db: Session, code: str) -> str | None:
    link = crud.get_link(db, code)
    return link.target_url if link else None


def record_click(session_factory, code: str) -> bool:
    """Apply one click increment in its own session.

    Runs detached from the request, so failures are logged rather than raised.
    """
    try:
        with session_factory() as db:
            counted = crud.increment_click(db, code)
    except Exception:
        logger.exception("Failed to increment click for %s", code)
        return False
    if not counted:
        logger.warning("Link %s disappeared before its click was counted", code)
    return counted


def resolve_and_count(db: Session, code: str) -> str | LinkError:
    target = lookup_target(db, code)
    if target is None:
        return LinkError.NOT_FOUND
    if not crud.increment_click(db, code):
        logger.warning("Link %s disappeared before its click was counted", code)
    return target
