from __future__ import annotations
from datetime import date, datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Date, DateTime, Numeric, CheckConstraint
from jollybaba.models.technician import Base
from jollybaba.utils.normalize import utcnow


class KhatabookEntry(Base):
    __tablename__ = 'khatabook_entries'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    mobile: Mapped[Optional[str]] = mapped_column(String(64))
    amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    paid: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    description: Mapped[Optional[str]] = mapped_column(Text)
    note: Mapped[Optional[str]] = mapped_column(Text)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, default=lambda: utcnow().date())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint('paid >= 0', name='khatabook_paid_nonnegative'),
        CheckConstraint('amount >= 0', name='khatabook_amount_nonnegative'),
    )
