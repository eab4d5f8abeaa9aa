"""Placeholder Imagery: deterministic stand-in URLs when no provider credentials exist."""

PLACEHOLDER_BASE = "https://via.placeholder.com/1024x1024/DAA520/FFFFFF"


def placeholder_single_url() -> str:
    return f"{PLACEHOLDER_BASE}?text=AI+Preview+Placeholder"


def placeholder_frame_urls(frame_count: int) -> list[str]:
    return [f"{PLACEHOLDER_BASE}?text=Frame+{i:02d}" for i in range(frame_count)]
