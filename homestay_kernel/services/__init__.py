"""Services for the homestay licensing kernel (write side)."""

from homestay_kernel.services.application_service import ApplicationService
from homestay_kernel.services.audit_service import AuditService
from homestay_kernel.services.certificate_issuer import CertificateIssuer, IssuedCertificate
from homestay_kernel.services.document_service import DocumentService
from homestay_kernel.services.legacy_onboarding_service import LegacyOnboardingService
from homestay_kernel.services.numbering_service import (
    NumberingService,
    RandomCertificateNumbering,
    SequentialCertificateNumbering,
)
from homestay_kernel.services.payment_service import PaymentSettlementService
from homestay_kernel.services.sequence_service import SequenceService
from homestay_kernel.services.service_request_service import ServiceRequestService
from homestay_kernel.services.settings_service import PortalSettingsService
from homestay_kernel.services.supersession_service import SupersessionService
from homestay_kernel.services.workflow_service import (
    GuardExecutor,
    WorkflowService,
    default_guard_executor,
)

__all__ = [
    "ApplicationService",
    "AuditService",
    "CertificateIssuer",
    "DocumentService",
    "GuardExecutor",
    "IssuedCertificate",
    "LegacyOnboardingService",
    "NumberingService",
    "PaymentSettlementService",
    "PortalSettingsService",
    "RandomCertificateNumbering",
    "SequenceService",
    "SequentialCertificateNumbering",
    "ServiceRequestService",
    "SupersessionService",
    "WorkflowService",
    "default_guard_executor",
]
