# jgpnr/crud/__init__.py

from .crud_customer import customer
from .crud_order import order
from .crud_ticket import ticket_crud
from .crud_ticket_scan import ticket_scan_crud
from .crud_ticket_settings import ticket_settings_crud
from .crud_audit_log import audit_log_crud
