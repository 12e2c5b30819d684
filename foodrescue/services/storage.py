import logging
import os
import uuid
from datetime import datetime

from werkzeug.utils import secure_filename

from foodrescue.errors import DependencyFailure, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIMETYPES = {'image/jpeg', 'image/png', 'image/gif', 'image/webp'}
MAX_IMAGE_BYTES = 5 * 1024 * 1024


class ImageStore:
    """Accepts an uploaded image and returns a reference clients can fetch."""

    def save(self, file_storage):
        raise NotImplementedError

    def delete(self, reference):
        raise NotImplementedError


class LocalImageStore(ImageStore):
    """Writes uploads to a folder served by the app under ``/uploads``."""

    def __init__(self, folder, url_prefix='/uploads'):
        self.folder = folder
        self.url_prefix = url_prefix.rstrip('/')

    def save(self, file_storage):
        if file_storage is None or not file_storage.filename:
            raise ValidationError('No image provided')
        if file_storage.mimetype not in ALLOWED_MIMETYPES:
            raise ValidationError(f'Unsupported image type: {file_storage.mimetype}')

        data = file_storage.read()
        if len(data) > MAX_IMAGE_BYTES:
            raise ValidationError('File is too large. Maximum size is 5MB.')

        name = secure_filename(file_storage.filename) or 'image'
        stored_name = f'{datetime.now():%Y%m%d%H%M%S}_{uuid.uuid4().hex}_{name}'
        try:
            os.makedirs(self.folder, exist_ok=True)
            with open(os.path.join(self.folder, stored_name), 'wb') as fh:
                fh.write(data)
        except OSError as e:
            logger.error('Error storing image %s: %s', stored_name, e)
            raise DependencyFailure('Failed to upload image')

        return f'{self.url_prefix}/{stored_name}'

    def delete(self, reference):
        """Remove a file previously returned by ``save``; missing files are ignored."""
        prefix = f'{self.url_prefix}/'
        if not reference or not reference.startswith(prefix):
            return
        path = os.path.join(self.folder, secure_filename(reference[len(prefix):]))
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error('Error removing image %s: %s', path, e)
