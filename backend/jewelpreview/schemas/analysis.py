"""Analysis Schemas: structured vision output for uploaded jewelry photos.

Invariants:
    - JewelryAnalysis is always well-formed, even when the analysis failed (success=False)
    - impact_level is normalized to subtle | moderate | bold (default moderate)
    - keep_original is always present: the user can decline every suggestion

Design Decisions:
    - Pydantic validates the model's JSON at the system boundary: a schema mismatch
      is a semantic failure, surfaced as an unavailable result rather than raised
    - extra="ignore": model output may carry fields we do not render
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

IMPACT_LEVELS = ("subtle", "moderate", "bold")


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class DetectedAttributes(_Lenient):
    jewelry_type: str = "other"
    has_stones: bool = False
    stone_description: str | None = None
    apparent_metal: str | None = None
    apparent_finish: str | None = None
    style_character: str | None = None


class Suggestion(_Lenient):
    suggestion_id: str
    title: str
    description: str = ""
    benefit: str | None = None
    impact_level: str = "moderate"
    character_note: str | None = None

    @field_validator("impact_level", mode="before")
    @classmethod
    def normalize_impact(cls, v: object) -> str:
        value = str(v or "").strip().lower()
        return value if value in IMPACT_LEVELS else "moderate"


class ImprovementCategory(_Lenient):
    category_id: str
    category_label: str = ""
    suggestions: list[Suggestion] = Field(default_factory=list)


class KeepOriginal(_Lenient):
    title: str = "Keep Original Design"
    description: str = (
        "Preserve the piece exactly as designed, honoring the original vision."
    )
    is_default: bool = True


class PreviewGuidance(_Lenient):
    summary: str = ""
    key_visual_changes: list[str] = Field(default_factory=list)


class ClarificationRequest(_Lenient):
    type: str
    message: str


class JewelryAnalysis(_Lenient):
    success: bool = True
    error_message: str | None = None
    piece_description: str = ""
    confidence_note: str = ""
    detected_attributes: DetectedAttributes = Field(default_factory=DetectedAttributes)
    improvement_categories: list[ImprovementCategory] = Field(default_factory=list)
    keep_original: KeepOriginal = Field(default_factory=KeepOriginal)
    preview_guidance: PreviewGuidance | None = None
    analysis_limitations: str | None = None
    clarification_request: ClarificationRequest | None = None

    @classmethod
    def unavailable(cls, message: str) -> "JewelryAnalysis":
        """Displayable stand-in when analysis could not be completed."""
        return cls(
            success=False,
            error_message=message,
            piece_description="Analysis unavailable",
            confidence_note="Unable to complete analysis",
        )

    def suggestions_by_id(self) -> dict[str, Suggestion]:
        return {
            s.suggestion_id: s
            for category in self.improvement_categories
            for s in category.suggestions
        }
