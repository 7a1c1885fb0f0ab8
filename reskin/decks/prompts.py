"""Prompt text for the deck theming model."""

import json

from reskin.decks.types import ThemingInputCard

SYSTEM_INSTRUCTION = "You are an expert MTG Universe-Beyond card themer."

THEMING_PROMPT_RULES = {
    "global": [
        "You create Universe-Beyond style reskins for Magic cards.",
        "Preserve gameplay intent from the source card. Do not invent new mechanics.",
        "Output concise and production-safe text only.",
        "Use the full deck context to keep names and tone coherent.",
    ],
    "card_type_constraints": [
        "Legendary cards must become a specific named character.",
        "Keep card identity coherent with source card type line (artifact stays artifact-themed, etc).",
        "Do not output alternative versions of basic lands (they are excluded from generation).",
    ],
    "output_contract": [
        "Return strict JSON object with top-level key `cards`.",
        "Each `cards` item must include: originalCardName, themedName, themedFlavorText, "
        "themedConcept, themedImagePrompt, constraintsApplied.",
        "Keep `themedImagePrompt` short (max ~35 words).",
        "Keep `themedConcept` short (max ~30 words).",
        "constraintsApplied must be an array of short strings.",
    ],
}


def _section(title: str, rules: list[str]) -> list[str]:
    return [title, *(f"- {rule}" for rule in rules)]


def build_theming_prompt(theme_universe: str, art_style_brief: str, cards: list[ThemingInputCard]) -> str:
    """Build the single batched theming prompt for a deck."""
    rules = "\n".join([
        *_section("GLOBAL RULES:", THEMING_PROMPT_RULES["global"]),
        "",
        *_section("CARD TYPE CONSTRAINTS:", THEMING_PROMPT_RULES["card_type_constraints"]),
        "",
        *_section("OUTPUT SCHEMA CONTRACT:", THEMING_PROMPT_RULES["output_contract"]),
    ])

    card_payload = [card.to_payload() for card in cards]

    return "\n".join([
        "Create themed card reskins for this deck.",
        f"Theme universe: {theme_universe}",
        f"Art style brief: {art_style_brief}",
        rules,
        "",
        "CARDS JSON:",
        json.dumps(card_payload, ensure_ascii=False),
    ])
