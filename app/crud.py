import models
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session


# ---------- links ----------
def get_link(db: Session, code: str) -> models.ShortLink | None:
    return db.query(models.ShortLink).filter_by(code=code).first()

def create_link(db: Session, code: str, target_url: str, owner_id: int) -> models.ShortLink | None:
    """Insert a link, or return None when the code is already claimed.

    Any other integrity failure (an unknown owner, say) is re-raised.
    """
    link = models.ShortLink(code=code, target_url=target_url, owner_id=owner_id, click_count=0)
    db.add(link)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if get_link(db, code) is None:
            raise
        return None
    db.refresh(link)
    return link

def increment_click(db: Session, code: str) -> bool:
    # Single UPDATE ... SET click_count = click_count + 1, no read-modify-write.
    updated = (
        db.query(models.ShortLink)
        .filter_by(code=code)
        .update(
            {models.ShortLink.click_count: models.ShortLink.click_count + 1},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated > 0

def get_links_by_owner(db: Session, owner_id: int, skip: int = 0, limit: int | None = 100) -> list[models.ShortLink]:
    return (
        db.query(models.ShortLink)
        .filter_by(owner_id=owner_id)
        .order_by(models.ShortLink.created_at.desc(), models.ShortLink.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

def count_links_by_owner(db: Session, owner_id: int) -> int:
    return db.query(models.ShortLink).filter_by(owner_id=owner_id).count()

def total_clicks_by_owner(db: Session, owner_id: int) -> int:
    total = (
        db.query(func.sum(models.ShortLink.click_count))
        .filter(models.ShortLink.owner_id == owner_id)
        .scalar()
    )
    return total or 0

def delete_link(db: Session, code: str, owner_id: int) -> bool:
    link = db.query(models.ShortLink).filter_by(code=code, owner_id=owner_id).first()
    if not link:
        return False
    db.delete(link)
    db.commit()
    return True


# ---------- users ----------
def get_user(db: Session, user_id: int) -> models.User | None:
    return db.get(models.User, user_id)

def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter_by(email=email).first()

def create_user(db: Session, name: str, email: str, password_hash: str) -> models.User | None:
    user = models.User(name=name, email=email, password_hash=password_hash)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if get_user_by_email(db, email) is None:
            raise
        return None
    db.refresh(user)
    return user
