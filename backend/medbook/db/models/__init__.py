from .user import UserModel
from .doctor import DoctorModel
from .availability import AvailabilityRuleModel
from .appointment import AppointmentModel

__all__ = ["UserModel", "DoctorModel", "AvailabilityRuleModel", "AppointmentModel"]
