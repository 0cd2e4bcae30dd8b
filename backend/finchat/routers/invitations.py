import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud
from ..db import get_db
from ..models import InvitationModel, InvitationStatus, UserModel
from ..schemas import InvitationCreate, InvitationOut, InvitationsOverview, UserOut
from ..security import candidate_phones, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me/invitations", tags=["invitations"])


def _to_out(invitation: InvitationModel) -> InvitationOut:
    return InvitationOut(
        id=invitation.id,
        sender_id=invitation.sender_id,
        sender_name=invitation.sender.full_name if invitation.sender else None,
        receiver_phone=invitation.receiver_phone,
        status=invitation.status.value,
        created_at=invitation.created_at,
    )


def _received_invitation(db: Session, invitation_id: int, user: UserModel) -> InvitationModel:
    invitation = crud.get_invitation(db, invitation_id)
    phones = candidate_phones(user.phone_number or "")
    if not invitation or invitation.receiver_phone not in phones:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found.")
    if invitation.status != InvitationStatus.PENDING:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Invitation already answered.")
    return invitation


@router.get("", response_model=InvitationsOverview)
def list_invitations(
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> InvitationsOverview:
    received = crud.list_received_invitations(db, candidate_phones(current_user.phone_number or ""))
    sent = crud.list_sent_invitations(db, current_user.id)
    return InvitationsOverview(
        received=[_to_out(invitation) for invitation in received],
        sent=[_to_out(invitation) for invitation in sent],
    )


@router.post("", response_model=InvitationOut, status_code=status.HTTP_201_CREATED)
def send_invitation(
    data: InvitationCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> InvitationOut:
    phone = "".join(ch for ch in data.receiver_phone if ch.isdigit())
    if not phone:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid phone number.")
    if current_user.phone_number and current_user.phone_number in candidate_phones(phone):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You cannot invite yourself.")
    invitation = crud.create_invitation(db, current_user.id, phone)
    logger.info("User %s invited %s to share their ledger", current_user.id, phone)
    return _to_out(invitation)


@router.post("/{invitation_id}/accept", response_model=UserOut)
def accept_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> UserOut:
    """Join the sender's family ledger."""
    invitation = _received_invitation(db, invitation_id, current_user)
    user = crud.accept_invitation(db, invitation, current_user)
    return UserOut.model_validate(user)


@router.post("/{invitation_id}/reject", response_model=InvitationOut)
def reject_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> InvitationOut:
    invitation = _received_invitation(db, invitation_id, current_user)
    return _to_out(crud.reject_invitation(db, invitation))
