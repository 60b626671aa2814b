"""ORM models.  Importing this package registers every table on Base.metadata."""

from homestay_kernel.models.application import Application
from homestay_kernel.models.application_action import ApplicationAction
from homestay_kernel.models.document import Document
from homestay_kernel.models.payment import Payment
from homestay_kernel.models.sequence_counter import SequenceCounter
from homestay_kernel.models.system_setting import SystemSetting

__all__ = [
    "Application",
    "ApplicationAction",
    "Document",
    "Payment",
    "SequenceCounter",
    "SystemSetting",
]
