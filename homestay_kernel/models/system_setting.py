"""
Module: homestay_kernel.models.system_setting
Responsibility: Administrator-managed portal settings (key -> JSON value).
    Read by PortalSettingsService and overlaid on the YAML policy baseline.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from homestay_kernel.db.base import Base, UUIDString


class SystemSetting(Base):
    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    value: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<SystemSetting {self.key}>"
