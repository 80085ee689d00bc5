from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db import get_db
from backend.app.models import User

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _provision_owner(db: Session, email: str) -> User:
    owner = db.execute(select(User).where(User.email == email)).scalars().first()
    if owner:
        return owner
    now = utcnow()
    owner = User(email=email, name=email.split("@")[0], created_at=now, updated_at=now)
    db.add(owner)
    db.commit()
    db.refresh(owner)
    logger.info("Provisioned owner %s", owner.id)
    return owner


def get_current_user(
    x_user_email: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """
    Header identity for the owner whose obligations a request touches.

    X-User-Email wins and provisions the owner on first sight; X-User-Id must
    name an existing owner. This is not a session system.
    """
    if x_user_email is not None:
        email = x_user_email.strip().lower()
        if not email:
            raise HTTPException(status_code=401, detail="Invalid X-User-Email header")
        return _provision_owner(db, email)

    if x_user_id:
        owner = db.get(User, x_user_id)
        if not owner:
            raise HTTPException(status_code=401, detail="Unknown X-User-Id")
        return owner

    raise HTTPException(status_code=401, detail="Missing X-User-Email or X-User-Id header")
