# investledger/routes/deps.py
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from investledger.core.database import SessionLocal
from investledger.models.user import User
from investledger.services.audit import Actor


def get_db(request: Request):
    session_factory = getattr(request.app.state, "session_factory", SessionLocal)
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


async def get_raw_body(request: Request) -> bytes:
    return await request.body()


# Identity headers are set by the authentication gateway in front of this API
def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    user = db.query(User).filter(User.id == x_user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if user.account_status != "active":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is closed")
    return user


def get_admin_actor(x_admin_id: Optional[str] = Header(default=None)) -> Actor:
    if not x_admin_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Admin authentication required")
    return Actor.admin(x_admin_id)


def get_notifier(request: Request):
    return getattr(request.app.state, "notifier", None)


def get_scheduler(request: Request):
    return request.app.state.scheduler
