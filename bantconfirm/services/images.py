# Filename: bantconfirm/services/images.py
# Uploaded logos and product pictures are stored inline as data URLs.

import base64
import mimetypes
from typing import Optional

from bantconfirm.errors import ValidationError

MAX_IMAGE_BYTES = 500 * 1024


def to_data_url(content: bytes, content_type: Optional[str] = None, filename: Optional[str] = None,
                *, limit: int = MAX_IMAGE_BYTES) -> str:
    """Convert raw image bytes to `data:<mime>;base64,...`, rejecting empty or oversized files."""
    if not content:
        raise ValidationError("Image file is empty")
    if len(content) > limit:
        raise ValidationError(f"Image size too large (Max {limit // 1024}KB)")

    mime = content_type
    if not mime or mime == "application/octet-stream":
        mime, _ = mimetypes.guess_type(filename or "")
    if not mime:
        mime = "image/jpeg"
    if not mime.startswith("image/"):
        raise ValidationError(f"Unsupported file type {mime!r}; expected an image")

    b64 = base64.b64encode(content).decode("utf-8")
    return f"data:{mime};base64,{b64}"
