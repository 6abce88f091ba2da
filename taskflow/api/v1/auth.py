"""Registration, login and the current user"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from taskflow.database import get_db
from taskflow.dependencies import get_current_user
from taskflow.logger import get_logger
from taskflow.models import User
from taskflow.models.user import UserStatus
from taskflow.schemas import Token, UserCreate, UserLogin, UserResponse, UserUpdate
from taskflow.security import create_access_token, get_password_hash, verify_password
from taskflow.utils.timeutils import utcnow

router = APIRouter()
log = get_logger("auth")


def _token_for(user: User) -> Token:
    return Token(access_token=create_access_token(user.id), user=UserResponse.model_validate(user))


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserCreate, db: Session = Depends(get_db)):
    email = user_in.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    user = User(
        name=user_in.name.strip(),
        email=email,
        password_hash=get_password_hash(user_in.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    log.info("User registered", extra={"user_id": user.id})
    return _token_for(user)


@router.post("/login", response_model=Token)
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == credentials.email.lower()).first()
    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if user.status != UserStatus.ACTIVE.value:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is not active")

    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)
    return _token_for(user)


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_current_user(
    changes: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = changes.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in data:
        if not data["name"].strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name cannot be empty")
        current_user.name = data["name"].strip()
    if "bio" in data:
        current_user.bio = data["bio"]
    if "skills" in data:
        current_user.skills = [skill.strip() for skill in data["skills"] if skill.strip()]
    if "notification_preferences" in data:
        current_user.notification_preferences = {
            **(current_user.notification_preferences or {}),
            **data["notification_preferences"],
        }

    db.commit()
    db.refresh(current_user)
    log.info("Profile updated", extra={"user_id": current_user.id, "fields": sorted(data)})
    return current_user
