from __future__ import annotations
from datetime import datetime
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, DateTime, JSON
from jollybaba.models.technician import Base
from jollybaba.utils.normalize import utcnow


class Ticket(Base):
    __tablename__ = 'tickets'
    # status is free text; these are only the labels the app itself writes
    STATUS_PENDING = 'Pending'
    STATUS_REPAIRED = 'Repaired'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    receive_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    mobile_number: Mapped[Optional[str]] = mapped_column(String(64))
    device_model: Mapped[Optional[str]] = mapped_column(String(255))
    imei: Mapped[Optional[str]] = mapped_column(String(64))
    issue_description: Mapped[Optional[str]] = mapped_column(Text)
    assigned_technician: Mapped[Optional[str]] = mapped_column(String(255))
    assigned_technician_email: Mapped[Optional[str]] = mapped_column(String(255))
    assigned_to: Mapped[Optional[str]] = mapped_column(String(255))
    assigned_to_email: Mapped[Optional[str]] = mapped_column(String(255))
    estimated_cost: Mapped[Optional[str]] = mapped_column(String(64))
    device_photo: Mapped[Optional[str]] = mapped_column(Text)
    lock_code: Mapped[Optional[str]] = mapped_column(String(128))
    repair_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    status: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    notes: Mapped[List[Any]] = mapped_column(JSON, default=list)
    delivery_photo_1: Mapped[Optional[str]] = mapped_column(Text)
    delivery_photo_2: Mapped[Optional[str]] = mapped_column(Text)
    created_by_email: Mapped[Optional[str]] = mapped_column(String(255))
    created_by_name: Mapped[Optional[str]] = mapped_column(String(255))
    created_by_id: Mapped[Optional[int]] = mapped_column(Integer)
    last_worked_by_email: Mapped[Optional[str]] = mapped_column(String(255))
    last_worked_by_name: Mapped[Optional[str]] = mapped_column(String(255))
    last_worked_by_id: Mapped[Optional[int]] = mapped_column(Integer)
    last_worked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    work_log: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    repaired_photo: Mapped[Optional[str]] = mapped_column(Text)
    repaired_photo_thumb: Mapped[Optional[str]] = mapped_column(Text)
    repaired_photo_uploaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    repaired_photo_uploaded_by: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, index=True)
