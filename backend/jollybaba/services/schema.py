"""Idempotent schema reconciliation.

The service runs "create table / add column if missing" on every start instead of
versioned migrations. ``SchemaManager`` owns the engine and a ``ColumnCache`` so
request code can ask which columns a table really has (legacy databases may lag
behind the models) without hitting the catalog on every request.
"""
from __future__ import annotations
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple
import logging
import threading
import time
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.schema import Column
from jollybaba.models.technician import Base
# model modules register their tables on Base.metadata
import jollybaba.models.ticket  # noqa: F401
import jollybaba.models.inventory_item  # noqa: F401
import jollybaba.models.customer  # noqa: F401
import jollybaba.models.khatabook_entry  # noqa: F401

logger = logging.getLogger(__name__)


class ColumnCache:
    """Per-table column-name cache with an explicit TTL."""

    def __init__(self, loader: Callable[[str], FrozenSet[str]], ttl: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self._loader = loader
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[FrozenSet[str], float]] = {}
        self._lock = threading.Lock()

    def get(self, table: str) -> FrozenSet[str]:
        now = self._clock()
        with self._lock:
            hit = self._entries.get(table)
            if hit and now - hit[1] < self.ttl:
                return hit[0]
        cols = self._loader(table)
        with self._lock:
            self._entries[table] = (cols, now)
        return cols

    def invalidate(self, table: Optional[str] = None):
        with self._lock:
            if table is None:
                self._entries.clear()
            else:
                self._entries.pop(table, None)


class SchemaManager:
    def __init__(self, engine: Engine, ttl: float = 60.0, metadata=None):
        self.engine = engine
        self.metadata = metadata if metadata is not None else Base.metadata
        self.columns = ColumnCache(self._load_columns, ttl=ttl)

    def _load_columns(self, table: str) -> FrozenSet[str]:
        insp = inspect(self.engine)
        if not insp.has_table(table):
            return frozenset()
        return frozenset(c['name'] for c in insp.get_columns(table))

    def has_column(self, table: str, column: str) -> bool:
        return column in self.columns.get(table)

    def _add_column_ddl(self, table: str, column: Column) -> str:
        col_type = column.type.compile(dialect=self.engine.dialect)
        return f'ALTER TABLE {table} ADD COLUMN {column.name} {col_type}'

    def ensure_column(self, table: str, column_name: str) -> bool:
        """Add one model column to an existing table; True when it was added."""
        column = self.metadata.tables[table].columns[column_name]
        self.columns.invalidate(table)
        if column_name in self._load_columns(table):
            return False
        with self.engine.begin() as conn:
            conn.execute(text(self._add_column_ddl(table, column)))
        self.columns.invalidate(table)
        logger.info('schema: added column %s.%s', table, column_name)
        return True

    def plan(self) -> List[str]:
        """What ``ensure_schema`` would do, without touching the database."""
        pending: List[str] = []
        for table in self.metadata.sorted_tables:
            existing = self._load_columns(table.name)
            if not existing:
                pending.append(f'{table.name} (new table)')
                continue
            pending.extend(f'{table.name}.{c.name}' for c in table.columns if c.name not in existing)
        return pending

    def ensure_schema(self) -> List[str]:
        """Create missing tables, then add missing columns. Returns added ``table.column`` names."""
        self.metadata.create_all(self.engine, checkfirst=True)
        self.columns.invalidate()
        added: List[str] = []
        for table in self.metadata.sorted_tables:
            existing = self._load_columns(table.name)
            missing = [c for c in table.columns if c.name not in existing]
            if not missing:
                continue
            with self.engine.begin() as conn:
                for column in missing:
                    conn.execute(text(self._add_column_ddl(table.name, column)))
                    added.append(f'{table.name}.{column.name}')
            self.columns.invalidate(table.name)
        if added:
            logger.info('schema: added columns %s', ', '.join(added))
        return added


__all__ = ['ColumnCache', 'SchemaManager']
