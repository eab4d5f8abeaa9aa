"""Prompt Builder: turns an opaque design snapshot into provider-ready text.

Invariants:
    - All functions are PURE: snapshot dict in, prompt string out
    - Missing snapshot fields degrade to generic wording, never raise
    - Upgrade prompts list applied enhancements only when the original was not kept

Design Decisions:
    - Dispatch on snapshot["subject_type"], not on job kind: the snapshot is
      self-describing, so legacy jobs rebuilt lazily produce the same text
"""

CONFIGURATION_SUBJECT = "design_configuration"
ANALYSIS_SUBJECT = "upgrade_analysis"

_QUALITY_SUFFIX = (
    ", minimalistic luxury jewelry, soft shadows, white background, "
    "professional jewelry product photography, 8k, extremely detailed"
)

_JEWELRY_TYPES = {
    "ring": "an elegant ring",
    "earrings": "a pair of elegant earrings",
    "pendant": "an elegant pendant",
    "necklace": "an elegant necklace",
    "bracelet": "an elegant bracelet",
    "brooch": "an elegant brooch",
}

_METALS = {
    "yellow_gold": "warm yellow gold",
    "white_gold": "bright white gold",
    "rose_gold": "romantic rose gold",
    "platinum": "lustrous platinum",
    "silver": "polished silver",
}

_STYLES = {
    "classic": "classic and timeless design",
    "modern": "modern contemporary design",
    "vintage": "vintage-inspired design",
    "minimalist": "minimalist clean design",
    "art_deco": "art deco geometric design",
    "bold": "bold statement design",
}


def build_prompt(snapshot: dict) -> str:
    if snapshot.get("subject_type") == ANALYSIS_SUBJECT:
        return build_upgrade_prompt(snapshot)
    return build_configuration_prompt(snapshot)


def describe_stones(stones: list[dict]) -> str:
    """Group stones by type, summing counts: '12 diamond gemstones and ruby gemstone'."""
    totals: dict[str, int] = {}
    for stone in stones:
        name = stone.get("stone_type")
        if not name:
            continue
        totals[name] = totals.get(name, 0) + int(stone.get("count") or 1)
    parts = [
        f"{count} {name} gemstones" if count > 1 else f"{name} gemstone"
        for name, count in totals.items()
    ]
    return " and ".join(parts)


def build_configuration_prompt(snapshot: dict) -> str:
    prompt = "Ultra high-quality studio render of "
    if snapshot.get("material"):
        prompt += f"{snapshot['material']} "
    category = snapshot.get("category")
    prompt += category.lower() if category else "jewelry piece"
    stones = describe_stones(snapshot.get("stones") or [])
    if stones:
        prompt += f" with {stones}"
    return prompt + _QUALITY_SUFFIX


def build_upgrade_prompt(snapshot: dict) -> str:
    parts = [
        "Professional product photography of a jewelry piece on a pure white background.",
    ]
    jewelry_type = (snapshot.get("jewelry_type") or "").lower()
    parts.append(
        f"Subject: {_JEWELRY_TYPES.get(jewelry_type, 'an elegant jewelry piece')}.",
    )
    metal = snapshot.get("metal")
    if metal:
        parts.append(f"Metal: {_METALS.get(metal.lower(), metal.replace('_', ' '))}.")
    if snapshot.get("has_stones") and snapshot.get("stone_description"):
        parts.append(f"Stones: {snapshot['stone_description']}.")
    style = snapshot.get("style")
    if style:
        key = style.lower()
        parts.append(
            f"Style: {_STYLES.get(key, key.replace('_', ' ') + ' design')}.",
        )
    applied = snapshot.get("applied_suggestions") or []
    if not snapshot.get("kept_original") and applied:
        parts.append("Enhancements applied:")
        for suggestion in applied:
            detail = suggestion.get("description") or suggestion.get("benefit") or ""
            parts.append(f"- {suggestion.get('title', 'Enhancement')}: {detail}")
    parts.append(
        "Clean, centered composition. Professional studio lighting. "
        "Sharp focus. No shadows on background.",
    )
    return " ".join(parts)
