import io
import logging
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE: Tuple[int, int] = (200, 200)
THUMBNAIL_QUALITY = 60


def make_thumbnail(payload: bytes, size: Tuple[int, int] = THUMBNAIL_SIZE) -> Optional[bytes]:
    """JPEG thumbnail fitting inside ``size``, or None if the bytes aren't an image."""
    try:
        image = Image.open(io.BytesIO(payload))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Could not decode image for thumbnail: {e}")
        return None

    if image.mode == "RGBA":
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[3])
        image = background
    elif image.mode != "RGB":
        image = image.convert("RGB")

    image.thumbnail(size)
    output = io.BytesIO()
    image.save(output, "JPEG", quality=THUMBNAIL_QUALITY)
    return output.getvalue()
