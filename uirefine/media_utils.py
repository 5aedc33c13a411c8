import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Optional, Tuple
from PIL import Image

from .exceptions import EncodingError, FormatError

logger = logging.getLogger(__name__)

BASE64_MARKER = ";base64"


@dataclass(frozen=True)
class BinaryBlob:
    """Screenshot bytes held in memory together with their declared MIME type."""

    data: bytes
    mime_type: str
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


def encode(blob: BinaryBlob) -> str:
    """Return a ``data:<mime>;base64,<payload>`` URL for the blob."""
    if blob is None or not isinstance(blob.data, (bytes, bytearray)):
        raise EncodingError("Screenshot file could not be read.")
    if not blob.data:
        raise EncodingError("Screenshot file is empty.")
    if not blob.mime_type:
        raise EncodingError("Screenshot file has no declared MIME type.")
    payload = base64.b64encode(bytes(blob.data)).decode("ascii")
    return f"data:{blob.mime_type}{BASE64_MARKER},{payload}"


def extract_payload(data_url: str) -> Tuple[str, str]:
    """Split a data URL into ``(base64_payload, mime_type)``."""
    if not isinstance(data_url, str) or "," not in data_url:
        raise FormatError("Screenshot preview is not a base64 data URL (missing ',' separator).")
    header, payload = data_url.split(",", 1)
    if not header.startswith("data:") or not header.endswith(BASE64_MARKER):
        raise FormatError("Screenshot preview is not a base64 data URL (missing 'data:' prefix or ';base64' marker).")
    mime_type = header[len("data:"):-len(BASE64_MARKER)]
    if not mime_type:
        raise FormatError("Screenshot preview data URL does not declare a MIME type.")
    if not payload:
        raise FormatError("Screenshot preview data URL has an empty payload.")
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FormatError(f"Screenshot preview payload is not valid base64: {e}") from e
    return payload, mime_type


async def read_upload(upload) -> BinaryBlob:
    """Read a multipart upload fully into memory."""
    try:
        content = await upload.read()
    except Exception as e:
        logger.error(f"Error reading uploaded screenshot {getattr(upload, 'filename', None)}: {e}")
        raise EncodingError(f"Screenshot file could not be read: {e}") from e
    if not content:
        raise EncodingError("Screenshot file is empty.")
    return BinaryBlob(data=content, mime_type=upload.content_type or "", filename=upload.filename)


def verify_image(blob: BinaryBlob) -> str:
    """Check the bytes decode as an image and return the detected MIME type."""
    try:
        with Image.open(io.BytesIO(blob.data)) as img:
            img.verify()
            image_format = img.format
    except Exception as e:
        raise EncodingError(f"Screenshot is not a readable image: {e}") from e
    mime_type = Image.MIME.get(image_format or "")
    if not mime_type:
        raise EncodingError(f"Unrecognised image format: {image_format}")
    return mime_type
