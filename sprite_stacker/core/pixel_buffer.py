from PIL import Image

from .image_handler import blank_image, decode_data_url, encode_data_url

RGBA = tuple[int, int, int, int]
TRANSPARENT: RGBA = (0, 0, 0, 0)


class PixelBuffer:
    """
    Fixed-size RGBA grid backed by a Pillow image.
    All coordinates are logical pixel indices; anything outside
    [0, width) x [0, height) is ignored on write and None on read.
    """

    __slots__ = ("image",)

    def __init__(self, image: Image.Image):
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        self.image = image

    @classmethod
    def blank(cls, width: int, height: int) -> "PixelBuffer":
        return cls(blank_image(width, height))

    @classmethod
    def from_data_url(cls, data_url: str, size: tuple[int, int] | None = None) -> "PixelBuffer":
        return cls(decode_data_url(data_url, size))

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get_pixel(self, x: int, y: int) -> RGBA | None:
        if not self.in_bounds(x, y):
            return None
        return self.image.getpixel((x, y))

    def set_pixel(self, x: int, y: int, color: RGBA):
        if self.in_bounds(x, y):
            self.image.putpixel((x, y), tuple(color))

    def clip_box(self, x0: int, y0: int, x1: int, y1: int) -> tuple[int, int, int, int] | None:
        """Clamp a half-open box to the buffer; None when nothing is left."""
        x0, y0 = max(0, x0), max(0, y0)
        x1, y1 = min(self.width, x1), min(self.height, y1)
        if x0 >= x1 or y0 >= y1:
            return None
        return x0, y0, x1, y1

    def clear_rect(self, x: int, y: int, width: int, height: int):
        box = self.clip_box(x, y, x + width, y + height)
        if box:
            self.image.paste(TRANSPARENT, box)

    def crop(self, x: int, y: int, width: int, height: int) -> "PixelBuffer":
        # Pillow pads out-of-range areas with zeros, i.e. transparent pixels
        return PixelBuffer(self.image.crop((x, y, x + width, y + height)))

    def paste_overwrite(self, other: "PixelBuffer", x: int, y: int):
        """Copy other's pixels in place, transparent ones included (no blending)."""
        box = self.clip_box(x, y, x + other.width, y + other.height)
        if not box:
            return
        x0, y0, x1, y1 = box
        src = other.image.crop((x0 - x, y0 - y, x1 - x, y1 - y))
        self.image.paste(src, (x0, y0))

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.image.copy())

    def to_bytes(self) -> bytes:
        return self.image.tobytes()

    def to_data_url(self) -> str:
        return encode_data_url(self.image)

    def count_opaque(self) -> int:
        return sum(1 for a in self.image.getchannel("A").getdata() if a)

    def __eq__(self, other):
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.size == other.size and self.to_bytes() == other.to_bytes()

    def __repr__(self):
        return f"PixelBuffer({self.width}x{self.height})"
