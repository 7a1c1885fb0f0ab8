"""Decklist text parsing.

Accepts the common ``N Name`` / ``Nx Name`` export format. Section headers
(Deck, Commander, Sideboard) and blank lines are ignored; repeated names
aggregate their quantities.
"""

import re
from dataclasses import dataclass, field

HEADER_LINE_RE = re.compile(r"^(deck|commander|sideboard)$", re.IGNORECASE)
COUNT_NAME_RE = re.compile(r"^(\d+)\s+(.+)$")
COUNT_X_NAME_RE = re.compile(r"^(\d+)[xX]\s+(.+)$")


@dataclass
class ParsedDeckCard:
    name: str
    quantity: int


@dataclass
class ParsedDecklist:
    cards: list[ParsedDeckCard] = field(default_factory=list)
    ignored_lines: list[str] = field(default_factory=list)
    invalid_lines: list[str] = field(default_factory=list)

    @property
    def card_count(self) -> int:
        return sum(card.quantity for card in self.cards)


def parse_decklist(text: str) -> ParsedDecklist:
    """Parse decklist text into unique cards with summed quantities."""
    result = ParsedDecklist()
    by_name: dict[str, ParsedDeckCard] = {}

    for raw_line in re.split(r"\r?\n", text):
        line = raw_line.strip()

        if not line or HEADER_LINE_RE.match(line):
            result.ignored_lines.append(raw_line)
            continue

        match = COUNT_NAME_RE.match(line) or COUNT_X_NAME_RE.match(line)
        if not match:
            result.invalid_lines.append(raw_line)
            continue

        quantity = int(match.group(1))
        name = match.group(2).strip()
        if quantity <= 0 or not name:
            result.invalid_lines.append(raw_line)
            continue

        existing = by_name.get(name)
        if existing:
            existing.quantity += quantity
            continue

        card = ParsedDeckCard(name=name, quantity=quantity)
        by_name[name] = card
        result.cards.append(card)

    return result
