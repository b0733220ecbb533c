def clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, int(v)))


def clamp_float(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, float(v)))


def parse_color(value) -> tuple[int, int, int, int] | None:
    """
    Accepts #RGB, #RGBA, #RRGGBB, #RRGGBBAA strings or a 3/4-tuple of ints.
    Alpha is returned in 0..255. Returns None for anything unparseable.
    """
    if isinstance(value, (tuple, list)):
        if len(value) not in (3, 4):
            return None
        try:
            parts = [clamp(int(c), 0, 255) for c in value]
        except (TypeError, ValueError):
            return None
        if len(parts) == 3:
            parts.append(255)
        return tuple(parts)
    if not isinstance(value, str):
        return None
    h = value.strip().lstrip("#")
    if len(h) in (3, 4):
        h = "".join(ch * 2 for ch in h)
    if len(h) == 6:
        h += "ff"
    if len(h) != 8:
        return None
    try:
        return tuple(int(h[i:i + 2], 16) for i in range(0, 8, 2))
    except ValueError:
        return None


def color_to_hex(rgba: tuple[int, int, int, int]) -> str:
    return "#" + "".join(f"{clamp(c, 0, 255):02X}" for c in rgba)


def human_readable_size(bytes_count: int) -> str:
    units = ["B", "KB", "MB", "GB"]
    i = 0
    v = float(bytes_count)
    while v >= 1024 and i < len(units) - 1:
        v /= 1024.0
        i += 1
    return f"{v:.2f} {units[i]}"
