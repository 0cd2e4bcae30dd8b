from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import crud
from ..db import get_db
from ..models import UserModel
from ..schemas import ProfileUpdate, UserOut
from ..security import get_current_user

router = APIRouter(prefix="/me", tags=["users"])


@router.get("", response_model=UserOut)
def read_profile(current_user: UserModel = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(current_user)


@router.patch("", response_model=UserOut)
def update_profile(
    data: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> UserOut:
    user = crud.update_user_name(db, current_user, data.full_name)
    return UserOut.model_validate(user)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> None:
    """Remove the account together with its transactions, categories and sent invitations."""
    crud.delete_user(db, current_user)


@router.get("/family", response_model=list[UserOut])
def list_family(
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> list[UserOut]:
    if not current_user.family_id:
        return [UserOut.model_validate(current_user)]
    return [UserOut.model_validate(member) for member in crud.list_family_members(db, current_user.family_id)]
