"""Test seeding utilities to reduce duplication.

These helpers centralize creation of technicians, inventory rows, tickets and ledger
entries, plus bearer headers built straight from the token claims.
"""
from datetime import date
from typing import Optional
from jollybaba import get_db
from jollybaba.models.technician import Technician
from jollybaba.models.inventory_item import InventoryItem
from jollybaba.models.ticket import Ticket
from jollybaba.models.khatabook_entry import KhatabookEntry
from jollybaba.services.policy import issue_token


def ensure_technician(email: str, name: Optional[str] = None, password: str = 'pw', role: str = 'technician') -> Technician:
    session = get_db()
    t = session.query(Technician).filter_by(email=email).one_or_none()
    if not t:
        t = Technician(name=name or email.split('@')[0], email=email, role=role)
        t.set_password(password)
        session.add(t); session.commit()
    return t


def ensure_admin(email: str = 'boss@example.com', name: str = 'Boss') -> Technician:
    return ensure_technician(email, name=name, role='admin')


def auth_headers(tech: Technician):
    return {'Authorization': f'Bearer {issue_token(tech)}'}


def add_item(imei: str, model: str = 'Galaxy S21', status: str = 'AVAILABLE', **extra) -> InventoryItem:
    session = get_db()
    item = InventoryItem(date=extra.pop('date', date(2024, 1, 10)), model=model, imei=imei, status=status,
                         purchase_amount=extra.pop('purchase_amount', 10000), **extra)
    session.add(item); session.commit()
    return item


def add_ticket(**fields) -> Ticket:
    session = get_db()
    fields.setdefault('customer_name', 'Walk-in')
    t = Ticket(notes=fields.pop('notes', []), work_log=fields.pop('work_log', []), **fields)
    session.add(t); session.commit()
    return t


def add_entry(name: str = 'Ravi', amount: float = 500, paid: float = 0, **extra) -> KhatabookEntry:
    session = get_db()
    entry = KhatabookEntry(name=name, amount=amount, paid=paid, entry_date=extra.pop('entry_date', date(2024, 2, 1)), **extra)
    session.add(entry); session.commit()
    return entry


__all__ = ['ensure_technician', 'ensure_admin', 'auth_headers', 'add_item', 'add_ticket', 'add_entry']
