"""Client-side image downscaling before upload."""
import io

from PIL import Image


def compress_image(data: bytes, max_width: int = 1920, quality: int = 80) -> bytes:
    """Downscale an image to at most *max_width* pixels wide and re-encode as JPEG.

    Height is scaled to keep the aspect ratio. Raises whatever Pillow raises
    for unreadable input.
    """
    with Image.open(io.BytesIO(data)) as img:
        width, height = img.size
        if width > max_width:
            height = max(1, round(height * max_width / width))
            width = max_width
            frame = img.resize((width, height), Image.Resampling.LANCZOS)
        else:
            frame = img.copy()

    if frame.mode not in ("RGB", "L"):
        frame = frame.convert("RGB")

    out = io.BytesIO()
    frame.save(out, format="JPEG", quality=quality, optimize=True)
    return out.getvalue()
