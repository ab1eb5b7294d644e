from app.models.organization import Department, StudyProgram
from app.models.user import User
from app.models.room import Room, Equipment
from app.models.booking import Booking
from app.models.checkout import Checkout, CheckoutItem, Violation
from app.models.exam import Exam, InspectorSnapshot
from app.models.system import SystemSetting, AuditEntry, CascadeRepair

__all__ = [
    "Department", "StudyProgram", "User", "Room", "Equipment", "Booking",
    "Checkout", "CheckoutItem", "Violation", "Exam", "InspectorSnapshot",
    "SystemSetting", "AuditEntry", "CascadeRepair",
]
