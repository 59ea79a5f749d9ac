from sqlalchemy import create_engine, inspect, text
from sqlalchemy.pool import StaticPool
from jollybaba.services.schema import ColumnCache, SchemaManager


def _legacy_engine():
    engine = create_engine('sqlite+pysqlite:///:memory:', poolclass=StaticPool,
                           connect_args={'check_same_thread': False})
    with engine.begin() as conn:
        conn.execute(text('CREATE TABLE tickets (id INTEGER PRIMARY KEY, customer_name VARCHAR(255), status VARCHAR(64))'))
        conn.execute(text("INSERT INTO tickets (customer_name, status) VALUES ('Legacy', 'Pending')"))
    return engine


def test_plan_lists_pending_changes_without_writing():
    engine = _legacy_engine()
    manager = SchemaManager(engine)
    pending = manager.plan()
    assert 'technicians (new table)' in pending
    assert 'tickets.work_log' in pending
    assert 'tickets.customer_name' not in pending
    assert not inspect(engine).has_table('technicians')


def test_ensure_schema_upgrades_legacy_table_and_is_idempotent():
    engine = _legacy_engine()
    manager = SchemaManager(engine)
    assert manager.columns.get('tickets') == frozenset({'id', 'customer_name', 'status'})
    added = manager.ensure_schema()
    assert 'tickets.repaired_photo' in added
    assert 'tickets.last_worked_by_email' in added
    assert manager.has_column('tickets', 'repaired_photo')
    assert inspect(engine).has_table('khatabook_entries')
    with engine.connect() as conn:
        assert conn.execute(text('SELECT customer_name FROM tickets')).scalar_one() == 'Legacy'
    assert manager.ensure_schema() == []
    assert manager.plan() == []


def test_ensure_column_reports_whether_it_added():
    engine = _legacy_engine()
    manager = SchemaManager(engine)
    assert manager.ensure_column('tickets', 'imei') is True
    assert manager.ensure_column('tickets', 'imei') is False
    assert manager.has_column('tickets', 'imei')


def test_column_cache_ttl_and_invalidate():
    now = [100.0]
    calls = []

    def loader(table):
        calls.append(table)
        return frozenset({f'col{len(calls)}'})

    cache = ColumnCache(loader, ttl=60, clock=lambda: now[0])
    assert cache.get('tickets') == {'col1'}
    now[0] += 30
    assert cache.get('tickets') == {'col1'}
    now[0] += 31
    assert cache.get('tickets') == {'col2'}
    cache.invalidate('tickets')
    assert cache.get('tickets') == {'col3'}
    cache.get('customers')
    cache.invalidate()
    cache.get('customers')
    assert calls == ['tickets', 'tickets', 'tickets', 'customers', 'customers']


def test_app_schema_has_every_model_table(app_ctx):
    manager = app_ctx.extensions['schema']
    for table in ('technicians', 'tickets', 'inventory_items', 'customers', 'khatabook_entries'):
        assert manager.columns.get(table), table
