MAX_CANVAS_DIMENSION = 1024
MAX_LAYERS = 64
RIGHT_ANGLES = (0, 90, 180, 270)


def validate_canvas_size(width, height) -> tuple[int, int]:
    try:
        w, h = int(width), int(height)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid canvas size: {width}x{height}") from None
    if not (1 <= w <= MAX_CANVAS_DIMENSION and 1 <= h <= MAX_CANVAS_DIMENSION):
        raise ValueError(f"Canvas size out of range: {w}x{h}")
    return w, h


def validate_layer_count(count) -> int:
    try:
        n = int(count)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid layer count: {count}") from None
    if not 1 <= n <= MAX_LAYERS:
        raise ValueError(f"Layer count out of range: {n}")
    return n


def validate_rotation(rotation) -> int:
    """Snap any angle to the nearest right angle in 0..270."""
    try:
        r = int(round(float(rotation) / 90.0)) * 90
    except (TypeError, ValueError):
        return 0
    return r % 360
