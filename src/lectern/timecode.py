"""Millisecond timestamp formatting and parsing."""


def format_time(ms: int, show_millis: bool = False) -> str:
    """Format milliseconds as HH:MM:SS, or HH:MM:SS.mmm with show_millis."""
    total = ms // 1000
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60
    if show_millis:
        return f"{h:02d}:{m:02d}:{s:02d}.{ms % 1000:03d}"
    return f"{h:02d}:{m:02d}:{s:02d}"


def parse_time(text: str) -> int:
    """Parse HH:MM:SS or HH:MM:SS.f{1,3} into milliseconds.

    Fractions are right-padded, so ".5" is 500 ms and ".05" is 50 ms.
    Raises ValueError on anything else.
    """
    parts = text.strip().split(":")
    if len(parts) != 3:
        raise ValueError(f"Invalid time format {text!r}. Use HH:MM:SS")

    hours, minutes, seconds_part = parts
    seconds, _, fraction = seconds_part.partition(".")
    if not (hours.isdigit() and minutes.isdigit() and seconds.isdigit()):
        raise ValueError(f"Invalid time format {text!r}. Use HH:MM:SS")
    if fraction and (not fraction.isdigit() or len(fraction) > 3):
        raise ValueError(f"Invalid milliseconds in {text!r}")

    millis = int(fraction.ljust(3, "0")) if fraction else 0
    return (int(hours) * 3600 + int(minutes) * 60 + int(seconds)) * 1000 + millis
