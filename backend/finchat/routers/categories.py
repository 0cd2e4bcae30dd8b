from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import crud
from ..db import get_db
from ..models import CategoryModel, UserModel
from ..schemas import CategoryCreate, CategoryOut, TransactionType
from ..security import get_current_user

router = APIRouter(prefix="/me/categories", tags=["categories"])


def _to_out(category: CategoryModel) -> CategoryOut:
    return CategoryOut(id=category.id, name=category.name, type=category.kind.value)


@router.get("", response_model=list[CategoryOut])
def list_categories(
    type_: TransactionType | None = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> list[CategoryOut]:
    return [_to_out(category) for category in crud.list_categories(db, current_user.id, type_)]


@router.post("", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(
    data: CategoryCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> CategoryOut:
    name = data.name.strip()
    if crud.find_category(db, current_user.id, name, data.type):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category already exists.")
    category = crud.create_category(db, current_user.id, CategoryCreate(name=name, type=data.type))
    return _to_out(category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> None:
    category = crud.get_category(db, category_id, current_user.id)
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found.")
    crud.delete_category(db, category)
