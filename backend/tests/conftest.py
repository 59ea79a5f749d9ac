import os, sys, pytest
# Ensure backend directory is on path so 'jollybaba' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from jollybaba import create_app, get_db


@pytest.fixture()
def app_instance(tmp_path):
    # fresh in-memory database per test; create_app reconciles the schema on startup
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length',
        'APP_ENV': 'test',
        'AUTO_INIT_DB': True,
        'SEED_DEV_ADMIN': False,
        'UPLOAD_DIR': str(tmp_path / 'uploads'),
        'CLOUDINARY_CLOUD_NAME': '',
        'CLOUDINARY_API_KEY': '',
        'CLOUDINARY_API_SECRET': '',
        'TESTING': True,
    })
    yield app


@pytest.fixture()
def app_ctx(app_instance):
    with app_instance.app_context():
        yield app_instance


@pytest.fixture()
def client(app_ctx):
    return app_ctx.test_client()


@pytest.fixture()
def session(app_ctx):
    return get_db()
