# jgpnr/models/__init__.py
# Import all models so SQLAlchemy can resolve relationships and
# Base.metadata sees every table.

from jgpnr.db.base_class import Base
from jgpnr.models.customer import Customer
from jgpnr.models.order import Order
from jgpnr.models.ticket import Ticket
from jgpnr.models.ticket_scan import TicketScan
from jgpnr.models.ticket_settings import TicketSettings
from jgpnr.models.audit_log import AuditLog
