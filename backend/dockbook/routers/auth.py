import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..core.security import create_access_token, verify_password
from ..database import get_db
from ..deps import get_current_user
from ..models.user import User
from ..schemas.auth import LoginIn, TokenOut, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email).first()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.info(f"Failed login for {payload.email}")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account disabled")
    return TokenOut(access_token=create_access_token(sub=user.email, role=user.user_type.value))


@router.get("/me", response_model=UserOut)
def me(current: User = Depends(get_current_user)):
    return current
