from .organization import Organization
from .user import User
from .property import Building, Unit
from .tenant import Tenant
from .lease import Lease
from .maintenance import Complaint, WorkOrder
from .invoice import Invoice
from .payment import Payment, PaymentIntent
from .visitor import VisitorLog
from .parking import (
    ParkingAssignment,
    ParkingLog,
    ParkingPricing,
    ParkingSpace,
    ParkingViolation,
    Vehicle,
)

__all__ = [
    "Organization",
    "User",
    "Building",
    "Unit",
    "Tenant",
    "Lease",
    "Complaint",
    "WorkOrder",
    "Invoice",
    "Payment",
    "PaymentIntent",
    "VisitorLog",
    "ParkingSpace",
    "ParkingPricing",
    "ParkingAssignment",
    "ParkingLog",
    "ParkingViolation",
    "Vehicle",
]
