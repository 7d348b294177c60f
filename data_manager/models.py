"""SQLAlchemy 2.0 models for the shopper onboarding backend.

Five tables:
- shoppers:        candidates with a free-form JSON ``details`` document
- shifts:          scheduled work periods per shopper
- shoppers_audit:  before/after snapshots of every shopper change
- access_logs:     PIN login attempts (admin and shopper gate)
- app_settings:    key/value JSON settings (PINs, templates, bus stops)
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    String,
    Text,
    Integer,
    DateTime,
    ForeignKey,
    JSON,
    Index,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


class ShiftTime(str, Enum):
    OPENING = 'Opening (04:00 - 13:00)'
    MORNING = 'Morning (06:00 - 15:00)'
    NOON = 'Noon (12:55 - 22:00)'
    AFTERNOON = 'Afternoon (14:55 - 00:00)'


class ShiftType(str, Enum):
    AA = 'Always Available'
    STANDARD = 'Standard'


# Column order used by every weekly export
SHIFT_TIMES = [ShiftTime.OPENING, ShiftTime.MORNING, ShiftTime.NOON, ShiftTime.AFTERNOON]
SHIFT_TIME_VALUES = [t.value for t in SHIFT_TIMES]
SHIFT_TYPE_VALUES = [t.value for t in ShiftType]

EARLY_SHIFTS = {ShiftTime.OPENING.value, ShiftTime.MORNING.value}
LATE_SHIFTS = {ShiftTime.NOON.value, ShiftTime.AFTERNOON.value}


def shift_short_name(shift_time: str) -> str:
    """'Morning (06:00 - 15:00)' -> 'Morning'"""
    return str(shift_time).split('(')[0].strip()


def new_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Shared declarative base for all dashboard models."""
    pass


class Shopper(Base):
    __tablename__ = "shoppers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    rank: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    shifts: Mapped[list["Shift"]] = relationship(
        back_populates="shopper",
        cascade="all, delete-orphan",
        order_by="Shift.date",
    )

    __table_args__ = (
        Index("ix_shoppers_created_at", "created_at"),
        Index("ix_shoppers_rank", "rank"),
    )

    def __repr__(self) -> str:
        return f"<Shopper(id={self.id}, name='{self.name}')>"


class Shift(Base):
    __tablename__ = "shifts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    shopper_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shoppers.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    time: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)

    shopper: Mapped["Shopper"] = relationship(back_populates="shifts")

    __table_args__ = (
        Index("ix_shifts_shopper_id", "shopper_id"),
        Index("ix_shifts_date_time", "date", "time"),
    )

    def __repr__(self) -> str:
        return f"<Shift(shopper={self.shopper_id}, {self.date} {shift_short_name(self.time)} {self.type})>"


class ShopperAudit(Base):
    """Snapshot trail for shopper rows, written by the before_flush hook."""
    __tablename__ = "shoppers_audit"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    record_id: Mapped[str] = mapped_column(String(36), nullable=False)
    operation_type: Mapped[str] = mapped_column(String(10), nullable=False)
    old_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    new_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_audit_changed_at", "changed_at"),
        Index("ix_audit_record_id", "record_id"),
    )

    def __repr__(self) -> str:
        return f"<ShopperAudit(id={self.id}, op={self.operation_type}, record={self.record_id})>"


class AccessLog(Base):
    __tablename__ = "access_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # SUCCESS / FAILURE / LOCKOUT
    target_role: Mapped[str] = mapped_column(String(16), nullable=False)  # ADMIN / SHOPPER
    device_info: Mapped[str] = mapped_column(Text, nullable=False, default='')
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        Index("ix_access_logs_created_at", "created_at"),
    )


class AppSetting(Base):
    __tablename__ = "app_settings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )
