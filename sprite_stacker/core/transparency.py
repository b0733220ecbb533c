from PIL import Image, ImageDraw

LIGHT = (255, 255, 255)
DARK = (204, 204, 204)


def create_checkerboard(size: tuple[int, int], square_size: int = 8) -> Image.Image:
    w, h = size
    bg = Image.new("RGBA", (max(1, w), max(1, h)), LIGHT + (255,))
    draw = ImageDraw.Draw(bg)
    for y in range(0, h, square_size):
        for x in range(0, w, square_size):
            if ((x // square_size) + (y // square_size)) % 2 == 0:
                draw.rectangle([x, y, x + square_size - 1, y + square_size - 1], fill=DARK + (255,))
    return bg
