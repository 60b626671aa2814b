"""
homestay_config -- single public entrypoint for portal policy.

Responsibility:
    Provides the ONLY way to obtain policy at runtime through
    ``get_active_policy()``.  No other component reads policy files.
    Returns the kernel's ``PortalPolicy``.  Administrator overrides stored
    in the database are layered on top by
    ``PortalSettingsService.effective_policy()``.

Architecture position:
    Configuration -- YAML-driven policy.  This package sits above
    ``homestay_kernel`` and below ``homestay_services``.  The kernel MUST
    NEVER import from ``homestay_config``.

Failure modes:
    - ``FileNotFoundError`` -- no policy set with the requested name.
    - ``ValueError`` -- policy validation failures.

Audit relevance:
    Every successful ``get_active_policy()`` call emits a
    ``HOMESTAY_POLICY_TRACE`` log entry containing the config id, version
    and checksum of the set that governs subsequent decisions.
"""

from __future__ import annotations

import logging
from pathlib import Path

from homestay_config.loader import load_policy_set
from homestay_config.schema import PolicySet
from homestay_kernel.domain.policy import PortalPolicy

_logger = logging.getLogger("homestay_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = ["get_active_policy", "get_active_policy_set", "PolicySet", "PortalPolicy"]


def get_active_policy_set(
    set_name: str = "default",
    config_dir: Path | None = None,
) -> PolicySet:
    """Load and validate the named policy set, emitting a trace record.

    Args:
        set_name: File stem under the configuration directory.
        config_dir: Override path to the policy sets directory.
            Defaults to homestay_config/sets/.

    Raises:
        FileNotFoundError: If the set does not exist.
        ValueError: If validation fails.
    """
    path = (config_dir or _DEFAULT_CONFIG_DIR) / f"{set_name}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"No policy set named {set_name!r} in {path.parent}")

    policy_set = load_policy_set(path)

    _logger.info(
        "HOMESTAY_POLICY_TRACE",
        extra={
            "trace_type": "HOMESTAY_POLICY_TRACE",
            "config_id": policy_set.config_id,
            "config_version": policy_set.version,
            "checksum": policy_set.checksum,
            "max_rooms_allowed": policy_set.policy.max_rooms_allowed,
            "certificate_numbering": policy_set.policy.certificate_numbering,
        },
    )
    return policy_set


def get_active_policy(
    set_name: str = "default",
    config_dir: Path | None = None,
) -> PortalPolicy:
    """The ONLY public policy entrypoint.  See ``get_active_policy_set``."""
    return get_active_policy_set(set_name, config_dir).policy
