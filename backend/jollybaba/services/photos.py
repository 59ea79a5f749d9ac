"""Repaired-photo derivatives: EXIF-aware resize to WEBP, then CDN upload."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, IO, Optional
import io
import time
import cloudinary.uploader
from PIL import Image, ImageOps
from jollybaba.config.settings import cloudinary_configured


@dataclass
class RepairedPhoto:
    url: str
    thumb_url: Optional[str]


class PhotoProcessingError(RuntimeError):
    pass


def render_webp(source: IO[bytes], max_dimension: int, quality: int, method: int = 4) -> bytes:
    """Rotate per EXIF, fit inside a ``max_dimension`` square (never enlarging), encode WEBP."""
    source.seek(0)
    with Image.open(source) as img:
        img = ImageOps.exif_transpose(img)
        if img.mode not in ('RGB', 'RGBA'):
            img = img.convert('RGBA' if 'A' in img.getbands() else 'RGB')
        img.thumbnail((max_dimension, max_dimension))
        out = io.BytesIO()
        img.save(out, format='WEBP', quality=quality, method=method)
        return out.getvalue()


class RepairedPhotoProcessor:
    def __init__(self, config):
        self.config = config

    @property
    def configured(self) -> bool:
        return cloudinary_configured(self.config)

    def _upload(self, data: bytes, public_id: str, **extra) -> Dict[str, Any]:
        return cloudinary.uploader.upload(
            data,
            folder=self.config.get('CLOUDINARY_REPAIRED_FOLDER', 'Jollybaba_Repaired'),
            public_id=public_id,
            resource_type='image',
            format='webp',
            overwrite=True,
            **extra,
        )

    def process(self, source: IO[bytes], ticket_id: int) -> RepairedPhoto:
        if not self.configured:
            raise PhotoProcessingError('Cloudinary not configured')
        base_name = f'ticket_{ticket_id}_{int(time.time() * 1000)}'
        main = render_webp(source, int(self.config.get('REPAIRED_MAX_DIMENSION', 1600)), int(self.config.get('REPAIRED_QUALITY', 75)))
        thumb = render_webp(source, int(self.config.get('REPAIRED_THUMB_DIMENSION', 480)), int(self.config.get('REPAIRED_THUMB_QUALITY', 70)), method=2)
        main_up = self._upload(main, base_name)
        thumb_up = self._upload(thumb, f'{base_name}_thumb', transformation=[{'quality': 'auto', 'fetch_format': 'auto'}])
        main_url = main_up.get('secure_url') or main_up.get('url')
        thumb_url = thumb_up.get('secure_url') or thumb_up.get('url')
        if not main_url:
            raise PhotoProcessingError('Failed to upload repaired photo')
        if not thumb_url:
            raise PhotoProcessingError('Failed to upload repaired photo thumbnail')
        return RepairedPhoto(url=main_url, thumb_url=thumb_url)
