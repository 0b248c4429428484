"""Object storage for content images.

Two backends share the same two calls, ``upload(bucket, path, file)`` and
``get_public_url(bucket, path)``:

* ``LocalObjectStorage`` writes into ``UPLOAD_FOLDER/<bucket>/<path>`` and the
  site serves the objects itself from ``/storage/<bucket>/<path>``.
* ``SupabaseObjectStorage`` pushes to the Storage REST API and hands back the
  bucket's public object URL.
"""
import os
import uuid
import urllib.error
import urllib.parse
import urllib.request

from flask import current_app, url_for
from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

POSTS_PREFIX = 'posts/'
INDUSTRIES_PREFIX = 'industries/'

_EXTENSION_MIME_TYPES = {
    'png': {'image/png'},
    'jpg': {'image/jpeg'},
    'jpeg': {'image/jpeg'},
    'gif': {'image/gif'},
    'webp': {'image/webp'},
}


class StorageError(Exception):
    pass


class LocalObjectStorage:
    def __init__(self, root):
        self.root = os.path.abspath(root)

    def resolve(self, bucket, path):
        bucket_root = os.path.abspath(os.path.join(self.root, secure_filename(bucket)))
        full_path = os.path.abspath(os.path.join(bucket_root, path))
        try:
            if os.path.commonpath([bucket_root, full_path]) != bucket_root:
                return None
        except ValueError:
            return None
        return full_path

    def upload(self, bucket, path, file):
        full_path = self.resolve(bucket, path)
        if not full_path:
            raise StorageError('Invalid object path.')
        if os.path.exists(full_path):
            raise StorageError('The resource already exists.')
        try:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            file.stream.seek(0)
            file.save(full_path)
        except OSError as exc:
            raise StorageError(f'Unable to store object: {exc}') from exc

    def get_public_url(self, bucket, path):
        return url_for('main.storage_object', bucket=bucket, object_path=path)


class SupabaseObjectStorage:
    def __init__(self, base_url, service_key, timeout=20):
        self.base_url = (base_url or '').rstrip('/')
        self.service_key = service_key or ''
        self.timeout = timeout

    def _object_url(self, *parts):
        quoted = [urllib.parse.quote(part, safe='/') for part in parts]
        return f"{self.base_url}/storage/v1/object/{'/'.join(quoted)}"

    def upload(self, bucket, path, file):
        if not self.base_url or not self.service_key:
            raise StorageError('Object storage is not configured.')
        file.stream.seek(0)
        body = file.stream.read()
        req = urllib.request.Request(self._object_url(bucket, path), data=body, method='POST')
        req.add_header('Authorization', f'Bearer {self.service_key}')
        req.add_header('apikey', self.service_key)
        req.add_header('Content-Type', (file.mimetype or 'application/octet-stream'))
        req.add_header('x-upsert', 'false')
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # nosec B310
                resp.read()
        except urllib.error.HTTPError as e:
            error_body = e.read().decode('utf-8', errors='replace')
            current_app.logger.error(f'Storage API error {e.code}: {error_body}')
            raise StorageError(f'Storage API error {e.code}.') from e
        except (urllib.error.URLError, OSError) as e:
            current_app.logger.exception('Storage upload failed.')
            raise StorageError('Storage service unreachable.') from e

    def get_public_url(self, bucket, path):
        return self._object_url('public', bucket, path)


def init_storage(app):
    backend = app.config.get('STORAGE_BACKEND', 'local')
    if backend == 'supabase':
        storage = SupabaseObjectStorage(
            app.config.get('SUPABASE_URL'),
            app.config.get('SUPABASE_SERVICE_KEY'),
            timeout=app.config.get('STORAGE_TIMEOUT_SECONDS', 20),
        )
    else:
        os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
        storage = LocalObjectStorage(app.config['UPLOAD_FOLDER'])
    app.extensions['object_storage'] = storage
    return storage


def get_storage():
    return current_app.extensions['object_storage']


def image_extension(file):
    """Return the lowercase extension of an acceptable image upload, else raise."""
    if not file or not file.filename:
        raise StorageError('No file selected.')

    filename = secure_filename(file.filename)
    if not filename or '.' not in filename or len(filename) > 180:
        raise StorageError('Invalid file name.')
    extension = filename.rsplit('.', 1)[1].lower()
    if extension not in current_app.config['ALLOWED_IMAGE_EXTENSIONS'] or extension not in _EXTENSION_MIME_TYPES:
        raise StorageError('Unsupported image type.')

    mime_type = (file.mimetype or '').split(';', 1)[0].lower()
    allowed_mimes = current_app.config.get('ALLOWED_UPLOAD_MIME_TYPES', set())
    if mime_type not in allowed_mimes or mime_type not in _EXTENSION_MIME_TYPES[extension]:
        raise StorageError('File type does not match its extension.')

    max_pixels = max(1, int(current_app.config.get('MAX_UPLOAD_IMAGE_PIXELS', 40_000_000)))
    file.stream.seek(0)
    try:
        with Image.open(file.stream) as image:
            width, height = image.size
            if width < 1 or height < 1 or (width * height) > max_pixels:
                raise StorageError('Image dimensions are out of range.')
            image.verify()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        raise StorageError('File is not a readable image.') from exc
    finally:
        file.stream.seek(0)
    return extension


def random_object_name(extension):
    return f"{uuid.uuid4().hex}.{extension}"


def public_url_prefix(prefix):
    """Public URL every uploaded object under ``prefix`` starts with."""
    return get_storage().get_public_url(current_app.config['STORAGE_BUCKET'], prefix)


def upload_image(file, prefix):
    """Upload an image under ``prefix`` and return its public URL."""
    extension = image_extension(file)
    bucket = current_app.config['STORAGE_BUCKET']
    path = f"{prefix}{random_object_name(extension)}"
    storage = get_storage()
    storage.upload(bucket, path, file)
    public_url = storage.get_public_url(bucket, path)
    current_app.logger.info(f'Uploaded image to {bucket}/{path}')
    return public_url
