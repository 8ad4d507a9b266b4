from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from fleet_booking.db import get_db
from fleet_booking.models.user import User
from fleet_booking.schemas.user import UserCreate, UserResponse, Token
from fleet_booking.utils.auth import create_access_token, get_current_user, get_password_hash, verify_password
import logging

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(user: UserCreate, db: Session = Depends(get_db)):
    """
    Register a new academy user with a role and home location.
    """
    existing = db.query(User).filter((User.username == user.username) | (User.email == user.email)).first()
    if existing:
        logger.error(f"Username or email already registered: {user.username}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username or email already registered")

    db_user = User(
        username=user.username,
        name=user.name,
        email=user.email,
        hashed_password=get_password_hash(user.password),
        role=user.role.value,
        location=user.location,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.debug(f"Registered user: {db_user.username} ({db_user.role}, {db_user.location})")
    return db_user


@router.post("/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Exchange username and password for a bearer token.
    """
    user = db.query(User).filter(User.username == form_data.username).first()
    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.error(f"Failed login for: {form_data.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {"access_token": create_access_token({"sub": user.username}), "token_type": "bearer"}


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
