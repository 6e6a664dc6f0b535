from enum import Enum


class Role(str, Enum):
    patient = "patient"
    doctor = "doctor"
    admin = "admin"


class AppointmentStatus(str, Enum):
    scheduled = "scheduled"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no-show"


class ConflictMode(str, Enum):
    EXACT = "exact"
    OVERLAP = "overlap"


# Statuses that free the slot again
INACTIVE_STATUSES = (AppointmentStatus.cancelled.value, AppointmentStatus.no_show.value)

# Statuses that block a cancel request
NON_CANCELLABLE_STATUSES = (
    AppointmentStatus.cancelled.value,
    AppointmentStatus.completed.value,
)

MIN_SLOT_DURATION = 15
MAX_SLOT_DURATION = 120
DEFAULT_SLOT_DURATION = 30

NO_AVAILABILITY_MESSAGE = "No availability for this day"

# Free-text limits on appointment fields
MAX_NOTES_LENGTH = 500
MAX_SYMPTOMS_LENGTH = 1000
MAX_PRESCRIPTION_LENGTH = 2000
MAX_DIAGNOSIS_LENGTH = 1000
MAX_CANCELLATION_REASON_LENGTH = 500
MAX_BIO_LENGTH = 1000
