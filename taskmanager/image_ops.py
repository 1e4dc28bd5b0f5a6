"""Avatar image operations."""

import re
from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from taskmanager.core.exceptions import ValidationError

ALLOWED_AVATAR_FILENAME = re.compile(r"\.(jpg|jpeg|png)$", re.IGNORECASE)


def is_allowed_avatar_filename(filename: str | None) -> bool:
    """Only jpg, jpeg and png uploads are accepted."""
    return bool(filename) and ALLOWED_AVATAR_FILENAME.search(filename) is not None


def to_avatar_png(data: bytes, width: int = 320, height: int = 240) -> bytes:
    """Cover-crop an uploaded image to `width` x `height` and encode it as PNG."""
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError("Please upload an image") from e

    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA" if "A" in image.getbands() else "RGB")

    fitted = ImageOps.fit(image, (width, height), method=Image.Resampling.LANCZOS)
    buffer = BytesIO()
    fitted.save(buffer, format="PNG")
    return buffer.getvalue()
