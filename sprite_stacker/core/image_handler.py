import base64
import binascii
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError

DATA_URL_PREFIX = "data:image/png;base64,"


def pil_to_png_bytes(im: Image.Image) -> bytes:
    buf = BytesIO()
    im.save(buf, format="PNG")
    return buf.getvalue()


def encode_data_url(im: Image.Image) -> str:
    """Lossless PNG snapshot of an RGBA image, as a base64 data URL."""
    return DATA_URL_PREFIX + base64.b64encode(pil_to_png_bytes(im.convert("RGBA"))).decode("ascii")


def decode_data_url(data_url: str, size: tuple[int, int] | None = None) -> Image.Image:
    """
    Decode a PNG data URL (or bare base64) back to an RGBA image.
    If size is given the decoded image is placed at the top-left of a transparent
    image of that size, matching a drawImage(img, 0, 0) onto a fresh canvas.
    Raises ValueError when the payload cannot be decoded.
    """
    if not data_url:
        raise ValueError("empty image data")
    payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    try:
        raw = base64.b64decode(payload, validate=True)
        img = Image.open(BytesIO(raw))
        img.load()
    except (binascii.Error, UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValueError(str(e)) from e
    img = img.convert("RGBA")
    if size is not None and img.size != tuple(size):
        out = Image.new("RGBA", tuple(size), (0, 0, 0, 0))
        out.paste(img, (0, 0))
        return out
    return img


def blank_image(width: int, height: int) -> Image.Image:
    return Image.new("RGBA", (width, height), (0, 0, 0, 0))


def save_png(image: Image.Image, out_path: str | Path):
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    image.save(p, format="PNG", optimize=True)
