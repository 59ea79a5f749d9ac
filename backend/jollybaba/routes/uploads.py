from __future__ import annotations
import time
from flask import Blueprint, request, current_app, send_from_directory
import cloudinary.utils
from jollybaba.config.settings import cloudinary_configured
from jollybaba.decorators.auth import login_required
from jollybaba.errors import InternalError, ValidationError
from jollybaba.services.storage import collect_upload_fields, current_storage

uploads_bp = Blueprint('uploads', __name__)
files_bp = Blueprint('files', __name__)


@uploads_bp.post('/upload')
@login_required
def upload_files():
    pairs = collect_upload_fields(request.files)
    if not pairs:
        raise ValidationError('No file uploaded', error='No file uploaded')
    stored = current_storage().save_many(pairs)
    current_app.logger.info('Files uploaded: %s', ', '.join(s.filename for s in stored))
    return {'success': True, 'files': [s.as_dict(request.host_url) for s in stored]}, 201


@uploads_bp.get('/cloudinary/sign')
@login_required
def cloudinary_sign():
    config = current_app.config
    if not cloudinary_configured(config):
        raise InternalError('Cloudinary is not configured on the server',
                            error='Cloudinary is not configured on the server',
                            extra={'missing': {
                                'cloud_name': not config.get('CLOUDINARY_CLOUD_NAME'),
                                'api_key': not config.get('CLOUDINARY_API_KEY'),
                                'api_secret': not config.get('CLOUDINARY_API_SECRET'),
                            }})
    timestamp = int(time.time())
    folder = (request.args.get('folder') or '').strip() or config.get('CLOUDINARY_UPLOAD_FOLDER')
    public_id = (request.args.get('publicId') or '').strip()
    params = {'timestamp': timestamp}
    if folder:
        params['folder'] = folder
    if public_id:
        params['public_id'] = public_id
    signature = cloudinary.utils.api_sign_request(params, config['CLOUDINARY_API_SECRET'])
    body = {
        'signature': signature,
        'timestamp': timestamp,
        'api_key': config['CLOUDINARY_API_KEY'],
        'cloud_name': config['CLOUDINARY_CLOUD_NAME'],
        'folder': folder,
    }
    if public_id:
        body['public_id'] = public_id
    return body


@files_bp.get('/uploads/<path:filename>')
def serve_upload(filename):
    return send_from_directory(current_app.config['UPLOAD_DIR'], filename)
