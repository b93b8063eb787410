"""Application models package."""

from mealshift.models.audit_log import AuditLog
from mealshift.models.blacklist import Blacklist
from mealshift.models.canteen import Canteen, CanteenShift
from mealshift.models.holiday import Holiday
from mealshift.models.order import Order
from mealshift.models.ordering_setting import OrderingSetting
from mealshift.models.shift import Shift
from mealshift.models.user import User

__all__ = [
    "AuditLog", "Blacklist", "Canteen", "CanteenShift", "Holiday", "Order", "OrderingSetting", "Shift", "User",
]
