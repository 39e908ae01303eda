from datetime import datetime
from typing import Any
from sqlalchemy import select, update
from sqlalchemy.orm import Session
from accounts.users.models import User

# Statement-level access to router_users. Each function runs one statement;
# the caller owns the session and its lifetime.

def find_by_email(db: Session, email: str) -> User | None:
    return db.scalars(select(User).where(User.email == email)).first()

def find_by_id(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)

def find_by_oauth(db: Session, provider: str, oauth_id: str) -> User | None:
    stmt = select(User).where(User.oauth_provider == provider, User.oauth_id == oauth_id)
    return db.scalars(stmt).first()

def find_by_customer_id(db: Session, customer_id: str) -> User | None:
    return db.scalars(select(User).where(User.stripe_customer_id == customer_id)).first()

def find_by_reset_hash(db: Session, token_hash: str, now: datetime) -> User | None:
    stmt = select(User).where(User.reset_token == token_hash, User.reset_token_expires > now)
    return db.scalars(stmt).first()

def insert_user(db: Session, now: datetime, **fields: Any) -> User:
    """INSERT + COMMIT; IntegrityError propagates to the caller."""
    u = User(created_at=now, updated_at=now, **fields)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u

def update_user(db: Session, user_id: int, now: datetime, *conditions, **values: Any) -> int:
    """Single UPDATE keyed by id (plus optional extra WHERE terms). Returns rows touched."""
    stmt = update(User).where(User.id == user_id, *conditions).values(updated_at=now, **values)
    res = db.execute(stmt)
    db.commit()
    return res.rowcount
