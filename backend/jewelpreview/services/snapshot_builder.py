"""Snapshot Builder: reads a job's subject and freezes it into an opaque JSON description.

Invariants:
    - Output is JSON-serializable and self-describing via "subject_type"
    - Missing subjects raise SubjectNotFoundError (a failed job at worker time,
      a skipped snapshot at submission time)
    - Upgrade snapshots include only suggestions that exist in the analysis

Design Decisions:
    - SqlSnapshotResolver takes the caller's session: the worker builds one per job unit of work
    - Snapshot functions split from the resolver so tests can build snapshots from bare rows
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from jewelpreview.core.build_prompt import ANALYSIS_SUBJECT, CONFIGURATION_SUBJECT
from jewelpreview.core.domain_types import JobKind
from jewelpreview.core.errors import SubjectNotFoundError
from jewelpreview.models.design_configuration import DesignConfiguration
from jewelpreview.models.upgrade_analysis import UpgradeAnalysis
from jewelpreview.schemas.analysis import JewelryAnalysis


def configuration_snapshot(config: DesignConfiguration) -> dict:
    return {
        "subject_type": CONFIGURATION_SUBJECT,
        "configuration_id": str(config.id),
        "name": config.name,
        "category": config.category,
        "base_model": config.base_model,
        "base_model_description": config.base_model_description,
        "material": config.material,
        "metal_type": config.metal_type,
        "karat": config.karat,
        "color_hex": config.color_hex,
        "stones": [dict(stone) for stone in (config.stones or [])],
    }


def analysis_snapshot(analysis: UpgradeAnalysis, options: dict) -> dict:
    parsed = JewelryAnalysis.model_validate(analysis.analysis or {})
    attributes = parsed.detected_attributes
    available = parsed.suggestions_by_id()
    applied = [
        {
            "suggestion_id": s.suggestion_id,
            "title": s.title,
            "description": s.description,
            "benefit": s.benefit,
        }
        for sid in options.get("applied_suggestion_ids") or []
        if (s := available.get(sid)) is not None
    ]
    return {
        "subject_type": ANALYSIS_SUBJECT,
        "analysis_id": str(analysis.id),
        "original_image_url": analysis.original_image_url,
        "jewelry_type": attributes.jewelry_type,
        "metal": attributes.apparent_metal,
        "has_stones": attributes.has_stones,
        "stone_description": attributes.stone_description,
        "style": attributes.style_character,
        "kept_original": bool(options.get("kept_original")),
        "applied_suggestions": applied,
    }


class SqlSnapshotResolver:
    """Implements SnapshotResolver against the subject tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def build(self, kind: str, subject_id: UUID, options: dict) -> dict:
        if JobKind(kind) == JobKind.UPGRADE_PREVIEW:
            analysis = await self.db.get(UpgradeAnalysis, subject_id)
            if analysis is None:
                raise SubjectNotFoundError("Analysis", str(subject_id))
            return analysis_snapshot(analysis, options)
        config = await self.db.get(DesignConfiguration, subject_id)
        if config is None:
            raise SubjectNotFoundError("Configuration", str(subject_id))
        return configuration_snapshot(config)
