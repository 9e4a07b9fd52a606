# Standard Library
import re
import time
import uuid
import base64
import binascii
import logging
from io import BytesIO
from contextlib import contextmanager

# Third-party
from PIL import Image as PILImage, UnidentifiedImageError

# Django
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import transaction

# Local Imports
from .exceptions import MediaDecodeError, MediaError, MediaStorageError, MediaTypeError
from .utilities import _options

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp"})
DOCUMENT_EXTENSIONS = frozenset({"pdf"})

_DATA_URL_RE = re.compile(r"^data:[\w.+-]+/(?P<ext>[\w.+-]+);base64,", re.IGNORECASE)
_LINE_BREAKS_RE = re.compile(r"[\r\n\t]")

_PIL_FORMAT_TO_EXT = {
    "jpeg": "jpg",
    "png": "png",
    "gif": "gif",
    "webp": "webp",
}


def _split_data_url(value: str) -> tuple[str | None, str]:
    """Return (declared extension or None, base64 payload)."""
    match = _DATA_URL_RE.match(value)
    if match:
        return match.group("ext").lower(), value[match.end():]
    return None, value


def _decode(payload: str) -> bytes:
    # base64 sent through query strings/forms loses "+" to " ", so spaces
    # are never trimmed here
    payload = _LINE_BREAKS_RE.sub("", payload).replace(" ", "+")
    try:
        blob = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MediaDecodeError("Failed to decode base64 data") from e
    if not blob:
        raise MediaDecodeError("Decoded file is empty")
    return blob


def _sniff_extension(blob: bytes) -> str | None:
    try:
        with PILImage.open(BytesIO(blob)) as img:
            fmt = (img.format or "").lower()
    except (UnidentifiedImageError, OSError):
        return None
    return _PIL_FORMAT_TO_EXT.get(fmt)


def _resolve_extension(ext: str, allowed, default_extension: str) -> str:
    if ext in allowed:
        return ext
    if _options().get("MEDIA_EXTENSION_POLICY", "reject") == "coerce":
        logger.warning("Unsupported extension %r stored as %r", ext, default_extension)
        return default_extension
    raise MediaTypeError(
        f"Invalid file type '{ext}'. Allowed: {', '.join(sorted(allowed))}"
    )


def store_base64(value, folder: str, allowed=IMAGE_EXTENSIONS, default_extension: str | None = None) -> str:
    """
    Persist a base64 string (data URL or bare base64) under `folder` and
    return the storage-relative path, e.g. "products/main/1700000000_ab12.png".

    Raises MediaDecodeError, MediaTypeError or MediaStorageError. Nothing is
    written unless every check passes.
    """
    if not isinstance(value, str) or not value.strip():
        raise MediaDecodeError("Expected a base64 encoded string")

    if default_extension is None:
        default_extension = _options().get("MEDIA_DEFAULT_EXTENSION", "png")

    declared, payload = _split_data_url(value.strip("\r\n\t"))
    if declared is not None:
        ext = _resolve_extension(declared, allowed, default_extension)
        blob = _decode(payload)
    else:
        blob = _decode(payload)
        ext = _resolve_extension(_sniff_extension(blob) or default_extension, allowed, default_extension)

    filename = f"{int(time.time())}_{uuid.uuid4().hex}.{ext}"
    name = f"{folder.strip('/')}/{filename}"
    try:
        return default_storage.save(name, ContentFile(blob))
    except OSError as e:
        raise MediaStorageError("Failed to save file to storage") from e


def discard_on_commit(path):
    """
    Delete a stored file once the surrounding transaction commits.
    Outside a transaction the file goes immediately.
    """
    name = getattr(path, "name", path)
    if not name:
        return

    def _delete():
        try:
            default_storage.delete(name)
        except OSError:
            logger.exception("Failed deleting stored file %s", name)

    transaction.on_commit(_delete)


def media_url(request, path):
    """Absolute URL for a stored path (None when there is no file)."""
    name = getattr(path, "name", path)
    if not name:
        return None
    url = default_storage.url(name)
    if request is not None:
        url = request.build_absolute_uri(url)
    return url


class MediaBatch:
    """Files written while handling one request, removable as a unit."""

    def __init__(self):
        self.stored = []

    def store(self, value, folder, field=None, **kwargs):
        try:
            path = store_base64(value, folder, **kwargs)
        except MediaError as e:
            e.field = field
            raise
        self.stored.append(path)
        return path

    def rollback(self):
        for name in self.stored:
            try:
                default_storage.delete(name)
            except OSError:
                logger.exception("Failed removing %s after aborted request", name)
        self.stored = []


@contextmanager
def media_batch():
    """
    Use outside `transaction.atomic()` so that a rolled back transaction
    also removes the files it wrote:

        with media_batch() as media, transaction.atomic():
            ...
    """
    batch = MediaBatch()
    try:
        yield batch
    except Exception:
        batch.rollback()
        raise
