"""Photo embedding: decode any image, cap its width, re-encode as a JPEG data URL."""
import base64
import logging
from io import BytesIO

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

MAX_WIDTH = 512
JPEG_QUALITY = 85


def embed_photo(data: bytes) -> str:
    img = Image.open(BytesIO(data))
    img.load()
    width, height = img.size
    if width > MAX_WIDTH:
        height = round(height * MAX_WIDTH / width)
        width = MAX_WIDTH
        img = img.resize((width, height), Image.LANCZOS)

    out = BytesIO()
    img.convert("RGB").save(out, format="JPEG", quality=JPEG_QUALITY)
    encoded = base64.b64encode(out.getvalue()).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"


def try_embed_photo(data: bytes) -> tuple[str | None, str | None]:
    """Returns (data_url, None) or (None, warning). Never raises for bad input."""
    try:
        return embed_photo(data), None
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning("Failed to process photo: %s", e)
        return None, "Could not process the photo; it was not attached."
