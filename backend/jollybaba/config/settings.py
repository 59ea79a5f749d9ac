from __future__ import annotations
from datetime import timedelta
from typing import Any, Dict
import os

TRUTHY = ('1', 'true', 'yes', 'on')


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in TRUTHY


def env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def env_defaults() -> Dict[str, Any]:
    """Configuration read from the process environment (after load_dotenv)."""
    app_env = os.getenv('APP_ENV') or os.getenv('FLASK_ENV') or 'development'
    production = app_env.lower() == 'production'
    seed_always = env_flag('SEED_ADMIN_ALWAYS')
    return {
        'APP_ENV': app_env,
        'DATABASE_URL': os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY') or os.getenv('JWT_SECRET') or 'change_this_secret_in_prod',
        'JWT_ACCESS_TOKEN_EXPIRES': timedelta(hours=4),
        'AUTO_INIT_DB': env_flag('AUTO_INIT_DB', True),
        'SEED_DEV_ADMIN': env_flag('SEED_DEV_ADMIN', (not production) or seed_always),
        'DEV_ADMIN_EMAIL': os.getenv('DEV_ADMIN_EMAIL') or os.getenv('ADMIN_EMAIL') or 'admin@jollybaba.local',
        'DEV_ADMIN_PASSWORD': os.getenv('DEV_ADMIN_PASSWORD') or os.getenv('ADMIN_PASSWORD') or 'admin1234',
        'ADMIN_GOOGLE_EMAIL': os.getenv('ADMIN_GOOGLE_EMAIL', ''),
        'GOOGLE_CLIENT_ID': os.getenv('GOOGLE_CLIENT_ID', ''),
        'UPLOAD_DIR': os.getenv('UPLOAD_DIR', os.path.join(os.getcwd(), 'uploads')),
        'MAX_CONTENT_LENGTH': env_int('MAX_CONTENT_LENGTH', 10 * 1024 * 1024),
        'CLOUDINARY_CLOUD_NAME': os.getenv('CLOUDINARY_CLOUD_NAME', ''),
        'CLOUDINARY_API_KEY': os.getenv('CLOUDINARY_API_KEY', ''),
        'CLOUDINARY_API_SECRET': os.getenv('CLOUDINARY_API_SECRET', ''),
        'CLOUDINARY_REPAIRED_FOLDER': os.getenv('CLOUDINARY_REPAIRED_FOLDER', 'Jollybaba_Repaired'),
        'CLOUDINARY_UPLOAD_FOLDER': os.getenv('CLOUDINARY_UPLOAD_FOLDER', 'Jollybaba_Repair'),
        'REPAIRED_MAX_DIMENSION': env_int('REPAIRED_MAX_DIMENSION', 1600),
        'REPAIRED_THUMB_DIMENSION': env_int('REPAIRED_THUMB_DIMENSION', 480),
        'REPAIRED_QUALITY': env_int('REPAIRED_QUALITY', 75),
        'REPAIRED_THUMB_QUALITY': env_int('REPAIRED_THUMB_QUALITY', 70),
        'SCHEMA_CACHE_TTL': env_int('SCHEMA_CACHE_TTL', 60),
        'CORS_ORIGINS': os.getenv('CORS_ORIGINS', '*'),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO'),
    }


def is_production(config) -> bool:
    return str(config.get('APP_ENV', '')).lower() == 'production'


def cloudinary_configured(config) -> bool:
    return bool(config.get('CLOUDINARY_CLOUD_NAME') and config.get('CLOUDINARY_API_KEY') and config.get('CLOUDINARY_API_SECRET'))
