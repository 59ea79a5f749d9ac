"""Ticket visibility rules, partial updates and the append-only work log."""
from __future__ import annotations
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional
from sqlalchemy import case, func, or_, select
from jollybaba.models.ticket import Ticket
from jollybaba.errors import ValidationError
from jollybaba.services.policy import Identity
from jollybaba.utils.normalize import clean_text, parse_datetime, utcnow, iso_timestamp
from jollybaba.utils.payload import parse_notes

# columns matched for "mine only"; legacy databases may lack some of them
MINE_TEXT_COLUMNS = ('assigned_technician', 'assigned_technician_email', 'assigned_to', 'created_by_email', 'created_by_name')
DATETIME_FIELDS = ('receive_date', 'repair_date', 'delivery_date')


@dataclass
class WorkIdentity:
    email: Optional[str] = None
    name: Optional[str] = None
    id: Optional[int] = None

    @property
    def empty(self) -> bool:
        return not self.email and not self.name and self.id is None

    def as_dict(self) -> Dict[str, Any]:
        return {'email': self.email, 'name': self.name, 'id': self.id}

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> Optional['WorkIdentity']:
        email = clean_text(data.get('worked_by_email'))
        name = clean_text(data.get('worked_by_name'))
        worker = cls(email=email.lower() if email else None, name=name, id=_int_or_none(data.get('worked_by_id')))
        return None if worker.empty else worker

    @classmethod
    def from_identity(cls, identity: Optional[Identity]) -> Optional['WorkIdentity']:
        if identity is None:
            return None
        worker = cls(
            email=identity.email.lower() if identity.email else None,
            name=identity.name or None,
            id=identity.id,
        )
        return None if worker.empty else worker


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or str(value).strip() == '':
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _timestamp_or_now(value: Any) -> datetime:
    try:
        return parse_datetime(value) or utcnow()
    except ValueError:
        return utcnow()


@dataclass
class TicketPatch:
    """Partial ticket update; ``None`` means "not provided" and keeps the stored value.

    Empty strings are treated as not provided. ``notes`` is the one field that
    replaces the stored value wholesale when present.
    """
    customer_name: Optional[str] = None
    mobile_number: Optional[str] = None
    device_model: Optional[str] = None
    imei: Optional[str] = None
    issue_description: Optional[str] = None
    estimated_cost: Optional[str] = None
    lock_code: Optional[str] = None
    receive_date: Optional[datetime] = None
    repair_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None
    status: Optional[str] = None
    delivery_photo_1: Optional[str] = None
    delivery_photo_2: Optional[str] = None
    assigned_technician: Optional[str] = None
    assigned_technician_email: Optional[str] = None
    assigned_to: Optional[str] = None
    assigned_to_email: Optional[str] = None
    notes: Optional[List[Any]] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> 'TicketPatch':
        values: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name == 'notes':
                if 'notes' in data:
                    values['notes'] = parse_notes(data.get('notes'))
                continue
            raw = data.get(f.name)
            if raw is None or raw == '':
                continue
            if f.name in DATETIME_FIELDS:
                try:
                    values[f.name] = parse_datetime(raw)
                except ValueError:
                    raise ValidationError(f'{f.name} invalid', error='INVALID_DATE')
            else:
                values[f.name] = str(raw)
        return cls(**values)

    def apply(self, ticket: Ticket) -> Ticket:
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if f.name == 'notes':
                ticket.notes = list(value)
            else:
                setattr(ticket, f.name, value)
        return ticket


def build_work_entry(worker: WorkIdentity, action: str, at: datetime, notes: Optional[str] = None) -> Dict[str, Any]:
    entry = {'action': action, 'at': iso_timestamp(at), 'user': worker.as_dict()}
    if notes:
        entry['notes'] = notes
    return entry


def update_ticket(ticket: Ticket, patch: TicketPatch, worker: Optional[WorkIdentity] = None,
                  work_action: Optional[str] = None, work_notes: Optional[str] = None, worked_at: Any = None) -> Ticket:
    """Coalesce ``patch`` onto ``ticket`` and append one work-log entry when an actor is known."""
    patch.apply(ticket)
    if worker is None:
        return ticket
    at = _timestamp_or_now(worked_at)
    action = work_action or (f'status:{patch.status}' if patch.status else 'update')
    append_work_log(ticket, build_work_entry(worker, action, at, work_notes))
    if worker.email:
        ticket.last_worked_by_email = worker.email
    if worker.name:
        ticket.last_worked_by_name = worker.name
    if worker.id is not None:
        ticket.last_worked_by_id = worker.id
    ticket.last_worked_at = at
    return ticket


def append_work_log(ticket: Ticket, entry: Dict[str, Any]):
    # reassign so the JSON column is flagged dirty
    ticket.work_log = list(ticket.work_log or []) + [entry]


def new_ticket(data: Dict[str, Any], creator: Identity, device_photo: Optional[str] = None) -> Ticket:
    customer_name = clean_text(data.get('customer_name'))
    if not customer_name:
        raise ValidationError('customer_name is required', error='customer_name is required')
    patch = TicketPatch.from_payload(data)
    ticket = Ticket(notes=[], work_log=[])
    patch.notes = parse_notes(data.get('notes'))
    patch.apply(ticket)
    ticket.device_photo = device_photo or clean_text(data.get('device_photo'))
    if not ticket.status:
        ticket.status = Ticket.STATUS_PENDING
    if not clean_text(data.get('assigned_technician')):
        # default-assign to the creator so it shows up in their own queue
        ticket.assigned_technician = creator.name or None
        if not clean_text(data.get('assigned_technician_email')) and creator.email:
            ticket.assigned_technician_email = creator.email
    ticket.created_by_email = creator.email.lower() if creator.email else None
    ticket.created_by_name = creator.name.lower() if creator.name else None
    ticket.created_by_id = creator.id
    return ticket


def _needles(identity: Identity) -> List[str]:
    email = (identity.email or '').strip().lower()
    name = (identity.name or '').strip().lower()
    needles: List[str] = []
    if email:
        needles.append(email)
        local = email.split('@')[0]
        if local:
            needles.append(local)
    if name:
        needles.append(name)
        needles.extend(part for part in name.split() if part)
    return [f'%{n}%' for n in needles]


def visible_tickets_query(identity: Identity, mine_only: bool, status_filter: str, available_columns: FrozenSet[str]):
    """Build the select for the caller's view of the ticket list, or None for an empty result."""
    stmt = select(Ticket)
    if identity.is_admin:
        return stmt.order_by(Ticket.id.desc())

    if not mine_only:
        status_expr = func.lower(func.coalesce(Ticket.status, ''))
        if status_filter:
            stmt = stmt.where(status_expr == status_filter)
        pending_first = case((status_expr == 'pending', 0), else_=1)
        return stmt.order_by(pending_first, Ticket.updated_at.desc().nulls_last(), Ticket.id.desc())

    if not identity.email and not identity.name and identity.id is None:
        return None
    needles = _needles(identity)
    clauses = []
    for column_name in MINE_TEXT_COLUMNS:
        if column_name not in available_columns or not needles:
            continue
        column = getattr(Ticket, column_name)
        normalized = func.lower(func.trim(func.coalesce(column, '')))
        clauses.append(or_(*[normalized.like(n) for n in needles]))
    if identity.id is not None and 'created_by_id' in available_columns:
        clauses.append(Ticket.created_by_id == identity.id)
    if not clauses:
        return None
    return stmt.where(or_(*clauses)).order_by(Ticket.id.desc())


def uploaded_by_label(identity: Identity) -> Optional[str]:
    if identity.email:
        return identity.email
    if identity.name:
        return identity.name
    if identity.id is not None:
        return f'id:{identity.id}'
    return None


def ticket_json(t: Ticket) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for column in Ticket.__table__.columns:
        value = getattr(t, column.name)
        if isinstance(value, datetime):
            value = iso_timestamp(value)
        out[column.name] = value
    out['notes'] = list(t.notes or [])
    out['work_log'] = list(t.work_log or [])
    return out
