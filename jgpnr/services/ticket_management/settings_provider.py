# jgpnr/services/ticket_management/settings_provider.py
import logging
import threading
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from jgpnr.crud.crud_ticket_settings import ticket_settings_crud
from jgpnr.schemas.settings import TicketSettingsUpdate
from jgpnr.services.audit import record_audit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettingsSnapshot:
    max_scan_count: int
    scan_window_days: int
    validity_days: int
    base_price: int
    allow_refunds: bool
    allow_transfers: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TicketSettingsProvider:
    """
    Holds the active ticket policy. Loaded once at startup and refreshed on
    every update, so new tickets pick up changes without a restart.
    """

    def __init__(self, snapshot: Optional[SettingsSnapshot] = None):
        self._snapshot = snapshot
        self._lock = threading.Lock()

    @staticmethod
    def _from_row(row) -> SettingsSnapshot:
        return SettingsSnapshot(
            max_scan_count=row.max_scan_count,
            scan_window_days=row.scan_window_days,
            validity_days=row.validity_days,
            base_price=row.base_price,
            allow_refunds=row.allow_refunds,
            allow_transfers=row.allow_transfers,
        )

    def load(self, db: Session) -> SettingsSnapshot:
        snapshot = self._from_row(ticket_settings_crud.get(db))
        with self._lock:
            self._snapshot = snapshot
        logger.info(f"Loaded ticket settings: {snapshot}")
        return snapshot

    reload = load

    def current(self, db: Session) -> SettingsSnapshot:
        if self._snapshot is None:
            return self.load(db)
        return self._snapshot

    def update(
        self, db: Session, changes: TicketSettingsUpdate, *, actor_id: Optional[str] = None
    ) -> SettingsSnapshot:
        data = changes.model_dump(exclude_unset=True, exclude_none=True)
        previous = self.current(db)
        if not data:
            return previous

        row = ticket_settings_crud.update(db, changes=data)
        snapshot = self._from_row(row)
        with self._lock:
            self._snapshot = snapshot

        changed = {
            field: {"from": getattr(previous, field), "to": value}
            for field, value in data.items()
            if getattr(previous, field) != value
        }
        record_audit(
            db,
            action="settings.changed",
            actor_type="staff" if actor_id else "system",
            actor_id=actor_id,
            entity_type="settings",
            entity_id="1",
            previous_state=previous.to_dict(),
            new_state=snapshot.to_dict(),
            change_details=changed,
        )
        logger.info(f"Ticket settings updated by {actor_id}: {changed}")
        return snapshot
