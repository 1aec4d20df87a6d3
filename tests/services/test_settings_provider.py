# tests/services/test_settings_provider.py
import pytest
from pydantic import ValidationError

from jgpnr.models.audit_log import AuditLog
from jgpnr.schemas.settings import TicketSettingsUpdate
from jgpnr.services.ticket_management.settings_provider import TicketSettingsProvider


def test_defaults_created_on_first_load(db):
    snapshot = TicketSettingsProvider().load(db)

    assert snapshot.max_scan_count == 2
    assert snapshot.scan_window_days == 14
    assert snapshot.validity_days == 30
    assert snapshot.base_price == 250000
    assert snapshot.allow_refunds is True


def test_update_refreshes_snapshot_and_audits(db, settings_provider):
    updated = settings_provider.update(
        db, TicketSettingsUpdate(max_scan_count=3), actor_id="staff_9"
    )

    assert updated.max_scan_count == 3
    assert settings_provider.current(db).max_scan_count == 3

    entry = db.query(AuditLog).filter(AuditLog.action == "settings.changed").one()
    assert entry.actor_id == "staff_9"
    assert entry.change_details == {"max_scan_count": {"from": 2, "to": 3}}


def test_reload_sees_changes_from_other_instances(db, settings_provider):
    TicketSettingsProvider().update(db, TicketSettingsUpdate(scan_window_days=21))

    assert settings_provider.current(db).scan_window_days == 14
    assert settings_provider.reload(db).scan_window_days == 21


def test_empty_update_is_a_no_op(db, settings_provider):
    before = settings_provider.current(db)

    assert settings_provider.update(db, TicketSettingsUpdate()) == before
    assert db.query(AuditLog).count() == 0


@pytest.mark.parametrize(
    "field, value",
    [
        ("max_scan_count", 0),
        ("max_scan_count", 11),
        ("scan_window_days", 0),
        ("validity_days", 366),
        ("base_price", 0),
    ],
)
def test_out_of_range_values_rejected(field, value):
    with pytest.raises(ValidationError):
        TicketSettingsUpdate(**{field: value})
