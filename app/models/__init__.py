"""Models package for database models."""

from app.models.user import User
from app.models.property import Property, Unit
from app.models.lease import Tenant, Lease
from app.models.payment import Payment
from app.models.ledger import RentLedgerEntry

__all__ = [
    "User",
    "Property",
    "Unit",
    "Tenant",
    "Lease",
    "Payment",
    "RentLedgerEntry",
]
