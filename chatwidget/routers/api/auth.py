import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import get_settings
from ...dependencies import get_current_user, get_db
from ...models import User
from ...schemas import LoginRequest, SignupRequest, UserRead
from ...security import SESSION_COOKIE_NAME, create_session_token, hash_password, verify_password
from ...services.quotas import is_admin_user

router = APIRouter()
logger = logging.getLogger(__name__)
settings = get_settings()
COOKIE_PARAMS = {
    "httponly": True,
    "samesite": "lax",
    "secure": settings.env.lower() not in {"development", "test"},
    "max_age": settings.session_expire_minutes * 60,
}


def _session_response(user: User) -> JSONResponse:
    response = JSONResponse(UserRead.model_validate(user).model_dump(mode="json"))
    response.set_cookie(SESSION_COOKIE_NAME, create_session_token(user.id), **COOKIE_PARAMS)
    return response


@router.post("/signup")
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    try:
        user = User(
            email=email,
            password_hash=hash_password(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
        db.add(user)
        db.commit()
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Duplicate email detected during signup", exc_info=exc)
        raise HTTPException(status_code=400, detail="Email already registered")
    logger.info("User signed up | user=%s", user.id)
    return _session_response(user)


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user:
        raise HTTPException(status_code=400, detail="Invalid credentials")
    try:
        if not verify_password(payload.password, user.password_hash):
            raise HTTPException(status_code=400, detail="Invalid credentials")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _session_response(user)


@router.post("/logout")
def logout():
    response = JSONResponse({"success": True})
    response.delete_cookie(SESSION_COOKIE_NAME)
    return response


@router.get("/user", response_model=UserRead)
def current_user(user: User = Depends(get_current_user)):
    return user


@router.get("/admin-status")
def admin_status(user: User = Depends(get_current_user)):
    return {"isAdmin": is_admin_user(user.id)}
