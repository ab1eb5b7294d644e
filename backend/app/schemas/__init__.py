from app.schemas.common import CascadeWarning, TransitionRequest
from app.schemas.room import RoomCreate, RoomResponse
from app.schemas.booking import (
    BookingCreate, BookingReschedule, BookingResponse, BookingTransitionResponse,
    BookingDeleteResponse, ConflictQuery, ConflictReport,
)
from app.schemas.checkout import (
    CheckoutCreate, CheckoutItemCreate, CheckoutStatusUpdate, CheckoutResponse,
    CheckoutTransitionResponse, CheckoutDeleteResponse,
    ViolationCreate, ViolationResolve, ViolationResponse,
)
from app.schemas.exam import (
    ExamCreate, ExamUpdate, ExamResponse, LecturerCandidate, ExamModeToggle, ExamModeResponse,
)
from app.schemas.system import CascadeRepairResponse

__all__ = [
    "CascadeWarning", "TransitionRequest",
    "RoomCreate", "RoomResponse",
    "BookingCreate", "BookingReschedule", "BookingResponse", "BookingTransitionResponse",
    "BookingDeleteResponse", "ConflictQuery", "ConflictReport",
    "CheckoutCreate", "CheckoutItemCreate", "CheckoutStatusUpdate", "CheckoutResponse",
    "CheckoutTransitionResponse", "CheckoutDeleteResponse",
    "ViolationCreate", "ViolationResolve", "ViolationResponse",
    "ExamCreate", "ExamUpdate", "ExamResponse", "LecturerCandidate", "ExamModeToggle", "ExamModeResponse",
    "CascadeRepairResponse",
]
