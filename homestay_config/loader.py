"""
Configuration Loader (``homestay_config.loader``).

Responsibility
--------------
Loads a YAML policy set and parses it into a ``PolicySet``.  This is
internal tooling: the single public entry point for runtime policy is
``homestay_config.get_active_policy()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required envelope keys.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id`` / ``version``  -> ``KeyError`` propagates.
* Invalid policy values  -> ``ValueError`` from ``PortalPolicy``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from homestay_config.schema import PolicySet
from homestay_kernel.domain.policy import PortalPolicy


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """
    Parse a date from YAML (string or date object).

    Raises:
        ValueError: if ``value`` is not a valid date representation.
    """
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_policy_set(data: dict[str, Any]) -> PolicySet:
    """
    Parse a policy set document.

    Preconditions:
        - ``data`` contains ``config_id`` and ``version``.
    Raises:
        KeyError: if required envelope keys are missing.
        ValueError: if the policy block fails validation.
    """
    policy_data = dict(data.get("policy") or {})
    if "legacy_rc_min_issue_date" in policy_data:
        policy_data["legacy_rc_min_issue_date"] = parse_date(
            policy_data["legacy_rc_min_issue_date"]
        )
    effective_from = data.get("effective_from")
    return PolicySet(
        config_id=data["config_id"],
        version=int(data["version"]),
        description=data.get("description", ""),
        effective_from=parse_date(effective_from) if effective_from else None,
        checksum=compute_checksum(data),
        policy=PortalPolicy.from_dict(policy_data),
    )


def load_policy_set(path: Path) -> PolicySet:
    return parse_policy_set(load_yaml_file(path))
