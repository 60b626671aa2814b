"""Selectors for the homestay licensing kernel (read side)."""

from homestay_kernel.selectors.action_selector import NOTIFIABLE_ACTIONS, ActionSelector
from homestay_kernel.selectors.application_selector import ApplicationSelector
from homestay_kernel.selectors.certificate_selector import CertificateSelector
from homestay_kernel.selectors.service_center_selector import ServiceCenterSelector

__all__ = [
    "ActionSelector",
    "ApplicationSelector",
    "CertificateSelector",
    "NOTIFIABLE_ACTIONS",
    "ServiceCenterSelector",
]
