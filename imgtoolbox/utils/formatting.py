import os

_SIZE_UNITS = ["B", "KB", "MB", "GB"]


def format_file_size(size: int) -> str:
    """Human readable size, e.g. ``1536 -> '1.5 KB'``."""
    if size <= 0:
        return "0 B"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    value = round(value, 2)
    if value.is_integer():
        return f"{int(value)} {_SIZE_UNITS[unit]}"
    return f"{value} {_SIZE_UNITS[unit]}"


def _stem(filename: str | None) -> str:
    return os.path.splitext(os.path.basename(filename or ""))[0]


def compressed_filename(filename: str | None) -> str:
    # Output is always JPEG whatever the upload was
    return f"compressed_{_stem(filename) or 'image'}.jpg"


def removed_bg_filename(filename: str | None) -> str:
    return f"removed_bg_{_stem(filename) or 'image'}.png"
