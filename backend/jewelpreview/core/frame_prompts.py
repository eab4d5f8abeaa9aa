"""Frame Prompts: view-angle decoration and storage keys for generated imagery.

Invariants:
    - Frame i of n is rendered at angle i * 360 / n degrees (0 for the first frame)
    - Frame prompts keep the base prompt verbatim as their prefix
    - Storage keys are deterministic per (subject, job, frame)
"""

from uuid import UUID

from jewelpreview.core.domain_types import (
    JobKind, MAX_FRAME_COUNT, MIN_FRAME_COUNT,
)

CONTENT_TYPE_PNG = "image/png"


def frame_angle(index: int, frame_count: int) -> float:
    return index * 360.0 / frame_count


def frame_prompt(base_prompt: str, index: int, frame_count: int) -> str:
    angle = frame_angle(index, frame_count)
    return (
        f"{base_prompt}, view angle {angle:.0f} degrees around the jewelry piece, "
        "consistent lighting and style"
    )


def frame_prompts(base_prompt: str, frame_count: int) -> list[str]:
    """Ordered prompts for a turntable set, ascending by angle."""
    if not MIN_FRAME_COUNT <= frame_count <= MAX_FRAME_COUNT:
        raise ValueError(
            f"Frame count must be between {MIN_FRAME_COUNT} and {MAX_FRAME_COUNT}",
        )
    return [frame_prompt(base_prompt, i, frame_count) for i in range(frame_count)]


def storage_prefix(kind: JobKind, subject_id: UUID, job_id: UUID) -> str:
    root = "upgrade-previews" if kind == JobKind.UPGRADE_PREVIEW else "ai-previews"
    return f"{root}/{subject_id}/{job_id}"


def single_image_key(prefix: str) -> str:
    return f"{prefix}/preview.png"


def frame_key(prefix: str, index: int) -> str:
    return f"{prefix}/frames/frame_{index:02d}.png"
