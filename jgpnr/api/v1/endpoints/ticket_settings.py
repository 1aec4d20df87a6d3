# jgpnr/api/v1/endpoints/ticket_settings.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from jgpnr.api import deps
from jgpnr.crud.crud_ticket_settings import ticket_settings_crud
from jgpnr.db.session import get_db
from jgpnr.schemas.settings import TicketSettings, TicketSettingsUpdate
from jgpnr.schemas.token import TokenPayload
from jgpnr.services.ticket_management.settings_provider import TicketSettingsProvider

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=TicketSettings)
def get_settings(
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return ticket_settings_crud.get(db)


@router.patch("", response_model=TicketSettings)
def update_settings(
    changes: TicketSettingsUpdate,
    db: Session = Depends(get_db),
    provider: TicketSettingsProvider = Depends(deps.get_settings_provider),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Update the ticket policy. Applies to tickets issued from now on."""
    provider.update(db, changes, actor_id=current_user.sub)
    return ticket_settings_crud.get(db)
