"""
Explicit validation run before any mutation.

Each validator returns a list of FieldError instead of raising on the first
problem, so a request is rejected once with every issue listed and nothing
is written.
"""
from typing import Any, Dict, List, Mapping, Optional, Sequence

from medbook.config.constants import (
    MAX_CANCELLATION_REASON_LENGTH,
    MAX_DIAGNOSIS_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_PRESCRIPTION_LENGTH,
    MAX_SLOT_DURATION,
    MAX_SYMPTOMS_LENGTH,
    MIN_SLOT_DURATION,
    AppointmentStatus,
)
from medbook.core.errors import FieldError, ValidationError
from medbook.core.timeutils import is_clock, is_valid_range

TEXT_LIMITS = {
    "notes": MAX_NOTES_LENGTH,
    "symptoms": MAX_SYMPTOMS_LENGTH,
    "prescription": MAX_PRESCRIPTION_LENGTH,
    "diagnosis": MAX_DIAGNOSIS_LENGTH,
    "cancellation_reason": MAX_CANCELLATION_REASON_LENGTH,
}

STATUS_VALUES = tuple(s.value for s in AppointmentStatus)

# Update fields backed by NOT NULL columns
REQUIRED_UPDATE_FIELDS = ("follow_up_required",)


def raise_for_errors(errors: Sequence[FieldError], message: str = "Validation failed") -> None:
    if errors:
        raise ValidationError(message, errors=list(errors))


def _check_time_range(
    start: Any, end: Any, prefix: str = ""
) -> List[FieldError]:
    errors = []
    if not is_clock(start):
        errors.append(FieldError(f"{prefix}start_time", "Start time must be in HH:MM format"))
    if not is_clock(end):
        errors.append(FieldError(f"{prefix}end_time", "End time must be in HH:MM format"))
    if not errors and not is_valid_range(start, end):
        errors.append(FieldError(f"{prefix}end_time", "End time must be after start time"))
    return errors


def _check_text_lengths(values: Mapping[str, Any]) -> List[FieldError]:
    errors = []
    for name, limit in TEXT_LIMITS.items():
        value = values.get(name)
        if value is not None and len(value) > limit:
            errors.append(
                FieldError(name, f"{name.replace('_', ' ').capitalize()} cannot exceed {limit} characters")
            )
    return errors


def validate_rule(rule: Mapping[str, Any], prefix: str = "") -> List[FieldError]:
    """Check one weekly availability rule."""
    errors = []
    day = rule.get("day_of_week")
    if not isinstance(day, int) or isinstance(day, bool) or not 0 <= day <= 6:
        errors.append(
            FieldError(f"{prefix}day_of_week", "Day of week must be between 0 (Sunday) and 6 (Saturday)")
        )

    errors.extend(_check_time_range(rule.get("start_time"), rule.get("end_time"), prefix))

    duration = rule.get("slot_duration_minutes")
    if (
        not isinstance(duration, int)
        or isinstance(duration, bool)
        or not MIN_SLOT_DURATION <= duration <= MAX_SLOT_DURATION
    ):
        errors.append(
            FieldError(
                f"{prefix}slot_duration_minutes",
                f"Slot duration must be between {MIN_SLOT_DURATION} and {MAX_SLOT_DURATION} minutes",
            )
        )
    return errors


def validate_rules(rules: Sequence[Mapping[str, Any]]) -> List[FieldError]:
    """Check a whole weekly schedule; one bad rule invalidates the batch."""
    if not rules:
        return [FieldError("availability", "At least one availability slot is required")]

    errors = []
    active_days: Dict[int, int] = {}
    for index, rule in enumerate(rules):
        prefix = f"availability[{index}]."
        rule_errors = validate_rule(rule, prefix)
        errors.extend(rule_errors)
        if rule_errors or not rule.get("is_active", True):
            continue
        day = rule["day_of_week"]
        if day in active_days:
            errors.append(
                FieldError(
                    f"{prefix}day_of_week",
                    f"Day {day} already has an active rule (availability[{active_days[day]}])",
                )
            )
        else:
            active_days[day] = index
    return errors


def validate_booking(payload: Mapping[str, Any]) -> List[FieldError]:
    """Check a new appointment request before it reaches the conflict checker."""
    errors = []
    if payload.get("doctor_id") is None:
        errors.append(FieldError("doctor_id", "Valid doctor ID is required"))
    if payload.get("appointment_date") is None:
        errors.append(FieldError("appointment_date", "Valid appointment date is required"))
    errors.extend(_check_time_range(payload.get("start_time"), payload.get("end_time")))
    errors.extend(_check_text_lengths(payload))
    return errors


def validate_changes(changes: Mapping[str, Any]) -> List[FieldError]:
    """Check the (already role-projected) fields of an update."""
    errors = []
    status = changes.get("status")
    if "status" in changes and status not in STATUS_VALUES:
        errors.append(FieldError("status", f"Invalid status, expected one of {', '.join(STATUS_VALUES)}"))
    for name in REQUIRED_UPDATE_FIELDS:
        if name in changes and changes[name] is None:
            errors.append(FieldError(name, f"{name.replace('_', ' ').capitalize()} cannot be null"))
    errors.extend(_check_text_lengths(changes))
    return errors


def validate_cancellation(reason: Optional[str]) -> List[FieldError]:
    return _check_text_lengths({"cancellation_reason": reason})
