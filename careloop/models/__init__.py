from .care_event import CareEvent
from .care_account import CareAccount
from .dependent import Dependent
from .prescription import Prescription
from .feeding_schedule import FeedingSchedule
from .lifecycle_item import LifecycleScheduleItem
from .lifecycle_record import LifecycleRecord
from .health_alert import PublicHealthAlert
from .reward_ledger import RewardLedgerEntry
from .priority_adjustment import PriorityAdjustmentLog

__all__ = [
    "CareEvent",
    "CareAccount",
    "Dependent",
    "Prescription",
    "FeedingSchedule",
    "LifecycleScheduleItem",
    "LifecycleRecord",
    "PublicHealthAlert",
    "RewardLedgerEntry",
    "PriorityAdjustmentLog",
]
