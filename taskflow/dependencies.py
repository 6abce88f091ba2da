"""FastAPI dependencies shared by the routers."""
from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from taskflow.database import get_db
from taskflow.errors import AuthenticationError
from taskflow.models import User
from taskflow.models.user import UserStatus
from taskflow.realtime.notifier import RealtimeNotifier
from taskflow.security import decode_access_token

security = HTTPBearer(auto_error=False)


def user_from_token(token: str, db: Session) -> User:
    user_id = decode_access_token(token)
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AuthenticationError("User not found")
    if user.status != UserStatus.ACTIVE.value:
        raise AuthenticationError("Account is not active")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise AuthenticationError("Access token required")
    return user_from_token(credentials.credentials, db)


def get_notifier(request: Request) -> RealtimeNotifier:
    return request.app.state.notifier


def get_origin_sid(x_socket_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Socket id of the caller's own realtime connection, used for echo suppression."""
    return x_socket_id
