from __future__ import annotations
import datetime as dt
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Date, DateTime, Numeric, ForeignKey, CheckConstraint
from jollybaba.models.technician import Base
from jollybaba.utils.normalize import utcnow


class InventoryItem(Base):
    __tablename__ = 'inventory_items'
    STATUS_AVAILABLE = 'AVAILABLE'
    STATUS_SOLD = 'SOLD'
    STATUS_RESERVED = 'RESERVED'
    ALL_STATUSES = (STATUS_AVAILABLE, STATUS_SOLD, STATUS_RESERVED)
    sr_no: Mapped[int] = mapped_column(Integer, primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    brand: Mapped[Optional[str]] = mapped_column(String(64))
    model: Mapped[str] = mapped_column(String(255), nullable=False)
    imei: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    variant_gb_color: Mapped[Optional[str]] = mapped_column(String(128))
    vendor_purchase: Mapped[Optional[str]] = mapped_column(String(255))
    vendor_phone: Mapped[Optional[str]] = mapped_column(String(64))
    purchase_amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    sell_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    sell_amount: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False))
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    mobile_number: Mapped[Optional[str]] = mapped_column(String(64))
    remarks: Mapped[Optional[str]] = mapped_column(Text)
    salesperson_name: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_AVAILABLE, index=True)
    khatabook_entry_id: Mapped[Optional[int]] = mapped_column(ForeignKey('khatabook_entries.id', ondelete='SET NULL'), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('AVAILABLE','SOLD','RESERVED')", name='inventory_items_status_chk'),
    )
