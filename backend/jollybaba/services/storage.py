"""Local disk storage for uploaded photos and documents, served back from /uploads."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
import os
import secrets
import time
from flask import current_app, request
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename
from jollybaba.errors import ValidationError

ALLOWED_MIMES = frozenset({
    'image/jpeg', 'image/jpg', 'image/png', 'image/webp', 'image/heic', 'image/heif', 'image/gif', 'application/pdf',
})
ALLOWED_EXTENSIONS = frozenset({'.jpg', '.jpeg', '.png', '.webp', '.heic', '.heif', '.pdf', '.gif'})
# field name -> max files
UPLOAD_FIELDS = {'file': 1, 'device_photo': 1, 'photo': 1, 'images': 8, 'attachments': 8}
MAX_FILE_SIZE = 10 * 1024 * 1024


@dataclass
class StoredFile:
    field: str
    filename: str
    mimetype: str
    size: int

    def as_dict(self, base_url: str) -> Dict[str, Any]:
        return {
            'field': self.field,
            'filename': self.filename,
            'mimetype': self.mimetype,
            'size': self.size,
            'url': f"{base_url.rstrip('/')}/uploads/{self.filename}",
        }


def is_allowed(file: FileStorage) -> bool:
    mime = (file.mimetype or '').lower()
    if mime in ALLOWED_MIMES:
        return True
    return os.path.splitext(file.filename or '')[1].lower() in ALLOWED_EXTENSIONS


def generated_name(original: Optional[str]) -> str:
    """``<millis>-<random>-<base><ext>``; the base is sanitised for the local filesystem."""
    ext = os.path.splitext(original or '')[1].lower()
    base = secure_filename(os.path.splitext(original or '')[0]) or 'upload'
    return f'{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}-{base}{ext}'


class LocalStorage:
    def __init__(self, upload_dir: str, max_file_size: int = MAX_FILE_SIZE):
        self.upload_dir = upload_dir
        self.max_file_size = max_file_size

    def _ensure_dir(self):
        os.makedirs(self.upload_dir, exist_ok=True)

    def path_for(self, filename: str) -> str:
        return os.path.join(self.upload_dir, filename)

    def save(self, file: FileStorage, field: str = 'file') -> StoredFile:
        if not is_allowed(file):
            raise ValidationError(
                f'Invalid file type. Allowed: JPG, PNG, WEBP, HEIC, GIF, PDF. received mime: {file.mimetype or "unknown"}',
                error='LIMIT_UNEXPECTED_FILE',
            )
        self._ensure_dir()
        name = generated_name(file.filename)
        path = self.path_for(name)
        file.save(path)
        size = os.path.getsize(path)
        if size > self.max_file_size:
            os.remove(path)
            raise ValidationError('File too large', error='LIMIT_FILE_SIZE')
        return StoredFile(field=field, filename=name, mimetype=file.mimetype or '', size=size)

    def save_many(self, files: Iterable[tuple]) -> List[StoredFile]:
        """All-or-nothing: files already written are removed when a later one is rejected."""
        stored: List[StoredFile] = []
        try:
            for field, file in files:
                stored.append(self.save(file, field))
        except ValidationError:
            self.discard(stored)
            raise
        return stored

    def discard(self, stored: Iterable[StoredFile]):
        for item in stored:
            try:
                os.remove(self.path_for(item.filename))
            except FileNotFoundError:
                pass


def collect_upload_fields(files) -> List[tuple]:
    """(field, FileStorage) pairs from ``request.files``; unknown fields or too many files are rejected."""
    pairs: List[tuple] = []
    received = sorted(set(files.keys()))
    unexpected = [f for f in received if f not in UPLOAD_FIELDS]
    if unexpected:
        raise ValidationError('Unexpected field(s) received', error='LIMIT_UNEXPECTED_FILE',
                              extra={'receivedFields': received, 'allowedFields': list(UPLOAD_FIELDS)})
    for field, limit in UPLOAD_FIELDS.items():
        items = [f for f in files.getlist(field) if f and f.filename]
        if len(items) > limit:
            raise ValidationError(f'Too many files for {field}', error='LIMIT_UNEXPECTED_FILE')
        pairs.extend((field, f) for f in items)
    return pairs


def current_storage() -> LocalStorage:
    return LocalStorage(current_app.config['UPLOAD_DIR'])


def public_url(filename: str) -> str:
    return f"{request.host_url.rstrip('/')}/uploads/{filename}"
