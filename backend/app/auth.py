"""
Bearer-token authentication.

Sign-in itself lives with the hosted auth provider; this API only needs to
map `Authorization: Bearer <token>` onto a user row.
"""
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from . import models
from .database import get_db


def new_api_token() -> str:
    return secrets.token_hex(32)


def bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get('authorization')
    if not auth or not auth.lower().startswith('bearer '):
        return None
    return auth.split(' ', 1)[1].strip() or None


def resolve_user(db: Session, request: Request) -> Optional[models.User]:
    token = bearer_token(request)
    if not token:
        return None
    return db.query(models.User).filter(models.User.api_token == token).first()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[models.User]:
    """Signed-in user or None (for endpoints where signing in is optional)"""
    return resolve_user(db, request)


def require_user(user: Optional[models.User] = Depends(get_current_user)) -> models.User:
    if user is None:
        raise HTTPException(status_code=401, detail='Unauthorized', headers={'WWW-Authenticate': 'Bearer'})
    return user
