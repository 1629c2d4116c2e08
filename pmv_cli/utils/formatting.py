"""
Helper functions for formatting data into human-readable strings.
"""

from pathvalidate import sanitize_filename


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def default_output_name(asset_path: str) -> str:
    """
    Derives a local file name from an asset path such as
    '/assets/b/12/34/original.mp4?fname=clip.mp4'.
    """
    last_part = asset_path.split("?", 1)[0].rsplit("/", 1)[-1]
    name = sanitize_filename(last_part, platform="auto")
    return name or "download"
