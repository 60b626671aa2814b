"""
Configuration set schema (``homestay_config.schema``).

A policy set is a versioned YAML document.  Its ``policy`` block becomes the
kernel's ``PortalPolicy``; the envelope (id, version, effective date,
checksum) is kept for audit traces.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from homestay_kernel.domain.policy import PortalPolicy


@dataclass(frozen=True)
class PolicySet:
    """A loaded, validated policy set.

    Contract: frozen.  ``checksum`` is the SHA-256 of the canonical JSON of
    the source document, so two sets with the same checksum are identical.
    """

    config_id: str
    version: int
    description: str
    effective_from: date | None
    checksum: str
    policy: PortalPolicy
