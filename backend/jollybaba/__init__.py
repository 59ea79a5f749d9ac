from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from sqlalchemy import create_engine, event, text
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import traceback
import cloudinary

from .config.settings import env_defaults, is_production, cloudinary_configured

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _build_engine(db_url: str):
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif db_url.startswith('sqlite'):
        engine = create_engine(db_url, echo=False, future=True, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(db_url, echo=False, future=True, pool_pre_ping=True)
    if engine.dialect.name == 'sqlite':
        # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; let SQLAlchemy emit it
        @event.listens_for(engine, 'connect')
        def _sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, 'begin')
        def _sqlite_begin(conn):
            conn.exec_driver_sql('BEGIN')
    return engine


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config.update(env_defaults())

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    app.logger.setLevel(str(app.config.get('LOG_LEVEL', 'INFO')).upper())

    # Database
    db_engine = _build_engine(app.config['DATABASE_URL'])
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)
    CORS(app, resources={r"/*": {"origins": app.config['CORS_ORIGINS']}}, supports_credentials=False)

    if cloudinary_configured(app.config):
        cloudinary.config(
            cloud_name=app.config['CLOUDINARY_CLOUD_NAME'],
            api_key=app.config['CLOUDINARY_API_KEY'],
            api_secret=app.config['CLOUDINARY_API_SECRET'],
            secure=True,
        )
    else:
        app.logger.warning('Cloudinary credentials missing; repaired photo uploads and upload signing are disabled')

    from .services.schema import SchemaManager
    from .services.photos import RepairedPhotoProcessor
    from .services.federated import GoogleTokenVerifier
    app.extensions['schema'] = SchemaManager(db_engine, ttl=float(app.config['SCHEMA_CACHE_TTL']))
    app.extensions['photo_processor'] = RepairedPhotoProcessor(app.config)
    app.extensions['google_verifier'] = GoogleTokenVerifier(app.config.get('GOOGLE_CLIENT_ID'))

    from .routes.auth import auth_bp
    from .routes.tickets import tickets_bp
    from .routes.inventory import inventory_bp
    from .routes.khatabook import khatabook_bp
    from .routes.uploads import uploads_bp, files_bp
    app.register_blueprint(auth_bp, url_prefix='/api')
    app.register_blueprint(tickets_bp, url_prefix='/api')
    app.register_blueprint(inventory_bp, url_prefix='/api')
    app.register_blueprint(khatabook_bp, url_prefix='/api')
    app.register_blueprint(uploads_bp, url_prefix='/api')
    app.register_blueprint(files_bp)

    _register_jwt_handlers()

    @app.route('/health')
    def health():
        try:
            with db_engine.connect() as conn:
                conn.execute(text('SELECT 1'))
        except Exception:
            app.logger.exception('Health check database ping failed')
            return {'status': 'degraded', 'db': 'down'}, 503
        return {'status': 'ok', 'db': 'up'}

    @app.teardown_appcontext
    def remove_session(exc=None):
        SessionLocal.remove()

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        SessionLocal.rollback()
        if isinstance(e, HTTPException):
            to_dict = getattr(e, 'to_dict', None)
            payload = to_dict() if to_dict else {'error': e.name, 'message': e.description}
            return payload, e.code
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        payload = {'error': 'Internal server error', 'message': 'Unexpected error'}
        if not is_production(app.config):
            payload['detail'] = str(e)
            payload['stack'] = traceback.format_exc()
        return payload, 500

    if app.config.get('AUTO_INIT_DB'):
        init_database(app)

    return app


def _register_jwt_handlers():
    def _unauthorized(message: str):
        return {'error': 'Unauthorized', 'message': message}, 401

    @jwt.unauthorized_loader
    def _missing_token(reason):
        return _unauthorized(reason)

    @jwt.invalid_token_loader
    def _invalid_token(reason):
        return _unauthorized(reason)

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return _unauthorized('Invalid or expired token')


def init_database(app, seed: Optional[bool] = None):
    """Reconcile schema and (optionally) seed the dev admin. Returns (added_columns, seed_result)."""
    from .services.bootstrap import seed_dev_admin
    added = app.extensions['schema'].ensure_schema()
    seed_result = None
    do_seed = app.config.get('SEED_DEV_ADMIN') if seed is None else seed
    if do_seed:
        with app.app_context():
            session = get_db()
            seed_result = seed_dev_admin(session, app.config, app.logger)
    return added, seed_result


def get_db():
    return SessionLocal()
