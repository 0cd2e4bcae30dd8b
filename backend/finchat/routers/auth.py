import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud
from ..config import Settings, get_settings
from ..db import get_db
from ..schemas import AuthResponse, LoginRequest, UserOut
from ..security import candidate_phones, create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=AuthResponse)
def login_user(
    data: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    """Dashboard login with the phone shared on Telegram and the 6-digit password set there."""
    user = crud.get_user_by_credentials(db, candidate_phones(data.phone_number), data.password)
    if not user:
        logger.info("Rejected dashboard login for %s", data.phone_number)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials.")

    expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    token = create_access_token({"sub": str(user.id)}, settings, expires_delta=expires_delta)

    return AuthResponse(
        access_token=token,
        token_type="bearer",
        user=UserOut.model_validate(user),
    )
