from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.rotinas.models import Base, enum_column
from app.rotinas.utils import utcnow


class ModuleType(str, enum.Enum):
    FUEL = "FUEL"
    CHECKLIST = "CHECKLIST"
    PASS_ALONG = "PASS_ALONG"
    # Reserved; no payload schema and no form yet.
    DEJEM = "DEJEM"
    DEA = "DEA"


class ModuleStatus(str, enum.Enum):
    AWAITING_SERGEANT = "AWAITING_SERGEANT"
    VALIDATED_SERGEANT = "VALIDATED_SERGEANT"
    REVIEWED_B3 = "REVIEWED_B3"
    PUBLISHED_OFFICERS = "PUBLISHED_OFFICERS"


# Forward order; index doubles as rank.
STATUS_ORDER: tuple[ModuleStatus, ...] = (
    ModuleStatus.AWAITING_SERGEANT,
    ModuleStatus.VALIDATED_SERGEANT,
    ModuleStatus.REVIEWED_B3,
    ModuleStatus.PUBLISHED_OFFICERS,
)

INITIAL_STATUS = ModuleStatus.AWAITING_SERGEANT


class Module(Base):
    __tablename__ = "modules"
    __table_args__ = (
        Index("idx_modules_status", "status"),
        Index("idx_modules_type", "type"),
        Index("idx_modules_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    type: Mapped[ModuleType] = mapped_column(enum_column(ModuleType), nullable=False)
    status: Mapped[ModuleStatus] = mapped_column(enum_column(ModuleStatus), nullable=False, default=INITIAL_STATUS)

    # Normalized JSON document; shape depends on `type`
    payload: Mapped[str] = mapped_column(Text, nullable=False)

    created_by: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    # Attribution: each stamped once, by the transition that reaches its status
    validated_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    published_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
