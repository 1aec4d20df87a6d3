# jgpnr/crud/crud_ticket_settings.py
from typing import Any, Dict
from datetime import datetime, timezone
from sqlalchemy.orm import Session

from jgpnr.core.config import settings as app_settings
from jgpnr.models.ticket_settings import TicketSettings, SETTINGS_ROW_ID


class CRUDTicketSettings:

    def get(self, db: Session) -> TicketSettings:
        """Return the settings row, creating it from configured defaults if absent."""
        row = db.query(TicketSettings).filter(TicketSettings.id == SETTINGS_ROW_ID).first()
        if row is None:
            row = TicketSettings(
                id=SETTINGS_ROW_ID,
                max_scan_count=app_settings.DEFAULT_MAX_SCAN_COUNT,
                scan_window_days=app_settings.DEFAULT_SCAN_WINDOW_DAYS,
                validity_days=app_settings.DEFAULT_VALIDITY_DAYS,
                base_price=app_settings.DEFAULT_BASE_PRICE,
                allow_refunds=True,
                allow_transfers=False,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
        return row

    def update(self, db: Session, *, changes: Dict[str, Any]) -> TicketSettings:
        row = self.get(db)
        for field, value in changes.items():
            setattr(row, field, value)
        row.updated_at = datetime.now(timezone.utc)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row


ticket_settings_crud = CRUDTicketSettings()
