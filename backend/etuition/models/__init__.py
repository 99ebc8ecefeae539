# Importing the package registers every table on Base.metadata
from etuition.models.application import Application
from etuition.models.enums import ApplicationStatus, Role, TuitionStatus, UserStatus
from etuition.models.payment import Payment
from etuition.models.tuition import Tuition
from etuition.models.user import User

__all__ = [
    "Application",
    "ApplicationStatus",
    "Payment",
    "Role",
    "Tuition",
    "TuitionStatus",
    "User",
    "UserStatus",
]
