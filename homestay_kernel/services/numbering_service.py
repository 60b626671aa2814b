"""
NumberingService -- human-readable application and certificate numbers.

Responsibility:
    - Application numbers: ``<prefix>-<year>-<district code>-<serial:06>``,
      one serial stream per (prefix, district, year).  Primary and legacy
      tracks use different prefixes and therefore independent streams.
    - Certificate numbers: ``<prefix>-<year>-<suffix:05>`` with a suffix
      chosen by the configured strategy (random or sequential).

Architecture position:
    Kernel > Services.  Uses SequenceService for every serial.

Invariants enforced:
    - No two calls for the same (prefix, district, year) return the same
      serial, under any interleaving (locked counter row).
    - Random certificate suffixes are checked against every stored
      certificate number before use; the unique column is the backstop.

Failure modes:
    - CertificateNumberExhaustedError when the random strategy finds no
      free suffix within its attempt budget.
"""

import random
from typing import Protocol

from sqlalchemy import exists, or_, select
from sqlalchemy.orm import Session

from homestay_kernel.domain.certificates import format_certificate_number
from homestay_kernel.domain.numbering import (
    district_code,
    format_application_number,
    sequence_name,
)
from homestay_kernel.domain.policy import PortalPolicy
from homestay_kernel.exceptions import CertificateNumberExhaustedError
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.application import Application
from homestay_kernel.services.sequence_service import SequenceService

logger = get_logger("services.numbering")

RANDOM_SUFFIX_SPACE = 100_000
MAX_RANDOM_ATTEMPTS = 50


class CertificateNumbering(Protocol):
    def next_certificate_number(self, year: int) -> str: ...


class RandomCertificateNumbering:
    """``HP-HST-<year>-<5 random digits>``, retried until unused."""

    def __init__(
        self,
        session: Session,
        prefix: str,
        rng: random.Random | None = None,
        max_attempts: int = MAX_RANDOM_ATTEMPTS,
    ):
        self._session = session
        self._prefix = prefix
        self._rng = rng or random.SystemRandom()
        self._max_attempts = max_attempts

    def next_certificate_number(self, year: int) -> str:
        for attempt in range(1, self._max_attempts + 1):
            candidate = format_certificate_number(
                self._prefix, year, self._rng.randrange(RANDOM_SUFFIX_SPACE)
            )
            taken = self._session.execute(
                select(exists().where(or_(
                    Application.certificate_number == candidate,
                    Application.legacy_rc_number == candidate,
                )))
            ).scalar()
            if not taken:
                return candidate
            logger.debug(
                "certificate_number_collision",
                extra={"candidate": candidate, "attempt": attempt},
            )
        raise CertificateNumberExhaustedError(year, self._max_attempts)


class SequentialCertificateNumbering:
    """``HP-HST-<year>-<per-year counter:05>``."""

    def __init__(self, session: Session, prefix: str):
        self._sequences = SequenceService(session)
        self._prefix = prefix

    def next_certificate_number(self, year: int) -> str:
        serial = self._sequences.next_value(f"certificate_number:{self._prefix}:{year}")
        return format_certificate_number(self._prefix, year, serial)


class NumberingService:
    """Allocates application numbers and picks the certificate strategy."""

    def __init__(
        self,
        session: Session,
        policy: PortalPolicy,
        rng: random.Random | None = None,
    ):
        self._session = session
        self._policy = policy
        self._sequences = SequenceService(session)
        self._rng = rng

    def district_code(self, district: str | None) -> str:
        return district_code(district, self._policy.district_codes)

    def next_application_number(self, district: str | None, year: int) -> str:
        """Next primary-track number for ``district`` in ``year``."""
        return self._next(self._policy.application_prefix, district, year, minimum=1)

    def next_legacy_application_number(
        self,
        district: str | None,
        year: int,
        seed: int | None = None,
    ) -> str:
        """Next legacy-track number; the serial never starts below ``seed``."""
        floor = seed if seed is not None else self._policy.legacy_serial_seed
        return self._next(self._policy.legacy_application_prefix, district, year, minimum=floor)

    def _next(self, prefix: str, district: str | None, year: int, minimum: int) -> str:
        code = self.district_code(district)
        serial = self._sequences.next_value(sequence_name(prefix, year, code), minimum=minimum)
        number = format_application_number(prefix, year, code, serial)
        logger.info(
            "application_number_allocated",
            extra={"application_number": number, "district_code": code, "serial": serial},
        )
        return number

    def certificate_numbering(self) -> CertificateNumbering:
        if self._policy.certificate_numbering == "sequential":
            return SequentialCertificateNumbering(self._session, self._policy.certificate_prefix)
        return RandomCertificateNumbering(
            self._session, self._policy.certificate_prefix, rng=self._rng,
        )
