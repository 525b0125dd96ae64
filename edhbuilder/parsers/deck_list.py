"""
Parser for text deck lists.

Accepts plain lists, quantity-prefixed lists and annotated exports
(Arena/MTGO/Moxfield):
    1 Sol Ring
    1x Sol Ring
    Sol Ring x1
    1 Sol Ring (C21) 263
    1 Sol Ring (C21) 263 *F*

Deck groups are switched by headers (Commander, Main Deck/Deck, Sideboard,
Considering/Maybeboard), optionally written as "// Sideboard" and optionally
followed by a count and colon: "Sideboard (15):". Card-type headers such as
"Creatures (30)" are consumed but do not change the group.

INVARIANTS:
- Bad lines are reported as ParseError values, never raised
- Lines longer than MAX_LINE_LENGTH are rejected before any regex runs
"""

import re

from edhbuilder.models.card import (
    MAX_QUANTITY,
    MIN_QUANTITY,
    DeckCategory,
    ParsedCardEntry,
    ParseError,
    ParseResult,
)

# Bounds regex work per line
MAX_LINE_LENGTH = 200

# "Sideboard", "// Main Deck", "Creatures (30):"
# Groups: (label)
HEADER_PATTERN = re.compile(r"^(?://\s*)?([A-Za-z][A-Za-z ]*?)\s*(?:\(\d+\))?\s*:?$")

GROUP_HEADERS: dict[str, DeckCategory] = {
    "commander": DeckCategory.COMMANDER,
    "commanders": DeckCategory.COMMANDER,
    "main": DeckCategory.MAIN,
    "main deck": DeckCategory.MAIN,
    "mainboard": DeckCategory.MAIN,
    "deck": DeckCategory.MAIN,
    "sideboard": DeckCategory.SIDEBOARD,
    "considering": DeckCategory.CONSIDERING,
    "maybeboard": DeckCategory.CONSIDERING,
}

TYPE_HEADERS = frozenset(
    {
        "creature",
        "creatures",
        "instant",
        "instants",
        "sorcery",
        "sorceries",
        "artifact",
        "artifacts",
        "enchantment",
        "enchantments",
        "planeswalker",
        "planeswalkers",
        "battle",
        "battles",
        "land",
        "lands",
    }
)

# Pattern: "4 Lightning Bolt (LEB) 163" with optional collector number and foil marker
# Groups: (quantity, card_name, set_code, collector_number)
ANNOTATED_PATTERN = re.compile(
    r"^(\d+)x?\s+(.+?)\s+\(([A-Za-z0-9]+)\)(?:\s+(\S+?))?(?:\s+\*[A-Za-z]+\*)?$"
)

# Pattern: "4 Card", "4x Card", "4xCard", "Card x4", "Card"
# Groups: (leading_quantity, card_name, trailing_quantity)
CARD_LINE_PATTERN = re.compile(
    r"^(?:(\d+)(?!\d)(?:\s*[xX]\s+|[xX]|\s*)(?=\S))?(.+?)(?:\s+[xX]?(\d+))?$"
)

SET_CODE_SUFFIX = re.compile(r"\s*\([A-Za-z0-9]+\)\s*$")
COLLECTOR_NUMBER_SUFFIX = re.compile(r"\s+\d+$")
WHITESPACE = re.compile(r"\s+")

BASIC_LANDS = frozenset({"plains", "island", "swamp", "mountain", "forest", "wastes"})

GENERATED_HEADERS: dict[DeckCategory, str] = {
    DeckCategory.MAIN: "Main Deck",
    DeckCategory.SIDEBOARD: "Sideboard",
    DeckCategory.CONSIDERING: "Considering",
}


class _LineRejected(Exception):
    """Internal signal carrying the reason a card line was rejected."""


def _header_label(line: str) -> str | None:
    match = HEADER_PATTERN.match(line)
    if not match:
        return None
    return WHITESPACE.sub(" ", match.group(1)).lower()


def _is_comment(line: str) -> bool:
    return line.startswith("//") or line.startswith("#")


def normalize_card_name(name: str) -> str:
    """
    Clean a card name for matching.

    Strips a trailing "(SET)" code and a trailing bare collector number,
    then collapses whitespace.
    """
    name = SET_CODE_SUFFIX.sub("", name)
    name = COLLECTOR_NUMBER_SUFFIX.sub("", name)
    return WHITESPACE.sub(" ", name).strip()


def _parse_card_line(line: str) -> tuple[str, int]:
    """
    Extract (name, quantity) from a single card line.

    Raises:
        _LineRejected: With a user-facing reason
    """
    match = ANNOTATED_PATTERN.match(line)
    if match:
        raw_quantity, raw_name = match.group(1), match.group(2)
    else:
        match = CARD_LINE_PATTERN.match(line)
        if not match:
            raise _LineRejected("Could not parse card line")
        leading, raw_name, trailing = match.groups()
        # Leading quantity wins when both are present
        raw_quantity = leading or trailing or "1"

    quantity = int(raw_quantity)
    if not MIN_QUANTITY <= quantity <= MAX_QUANTITY:
        raise _LineRejected(f"Quantity must be between {MIN_QUANTITY} and {MAX_QUANTITY}")

    name = normalize_card_name(raw_name)
    if len(name) < 2:
        raise _LineRejected("Card name is too short")
    if name.isdigit():
        raise _LineRejected("Card name cannot be a number")

    return name, quantity


def parse_deck_list(text: str) -> ParseResult:
    """
    Parse deck list text into entries, an optional commander and line errors.

    Args:
        text: Raw deck list (clipboard paste or file contents)

    Returns:
        ParseResult. Entries in the Commander group are also kept in entries;
        the last of them fills the commander slot.
    """
    result = ParseResult()
    category = DeckCategory.MAIN

    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()

        # Skip empty lines
        if not line:
            continue

        if len(raw_line) > MAX_LINE_LENGTH:
            result.errors.append(
                ParseError(
                    line=line_number,
                    content=raw_line[:MAX_LINE_LENGTH],
                    message=f"Line exceeds {MAX_LINE_LENGTH} characters",
                )
            )
            continue

        label = _header_label(line)
        if label in GROUP_HEADERS:
            category = GROUP_HEADERS[label]
            continue
        if label in TYPE_HEADERS:
            continue

        if _is_comment(line):
            continue

        try:
            name, quantity = _parse_card_line(line)
        except _LineRejected as exc:
            result.errors.append(ParseError(line=line_number, content=raw_line, message=str(exc)))
            continue

        entry = ParsedCardEntry(name=name, quantity=quantity, category=category)
        result.entries.append(entry)
        if category is DeckCategory.COMMANDER:
            result.commander = entry

    return result


def get_unique_card_names(result: ParseResult) -> list[str]:
    """
    Unique card names for batch resolution (entries plus commander).

    Comparison is case-insensitive; the first spelling seen is kept.
    """
    seen: set[str] = set()
    names: list[str] = []

    candidates = list(result.entries)
    if result.commander is not None:
        candidates.append(result.commander)

    for entry in candidates:
        key = entry.name.lower()
        if key in seen:
            continue
        seen.add(key)
        names.append(entry.name)

    return names


def validate_commander_deck(result: ParseResult) -> list[str]:
    """
    Commander-format warnings for a parsed list.

    Warnings are advisory; nothing here rejects the import.
    """
    warnings: list[str] = []

    if result.commander is None:
        warnings.append("No commander detected. Please select a commander.")

    non_commander = [e for e in result.entries if e.category is not DeckCategory.COMMANDER]
    total = sum(e.quantity for e in non_commander)
    if total > 99:
        warnings.append(f"Deck has {total} cards (should be 99 + commander = 100 total)")

    line_counts: dict[str, int] = {}
    for entry in non_commander:
        key = entry.name.lower()
        if key in BASIC_LANDS:
            continue

        if entry.quantity > 1:
            warnings.append(
                f'"{entry.name}" appears {entry.quantity} times (Commander allows only 1 copy)'
            )

        line_counts[key] = line_counts.get(key, 0) + 1
        if line_counts[key] == 2:
            warnings.append(f'"{entry.name}" appears multiple times in the list')

    return warnings


def generate_deck_list_text(
    entries: list[ParsedCardEntry], commander: ParsedCardEntry | None = None
) -> str:
    """
    Render entries back into deck list text, grouped by category.

    Output is accepted by parse_deck_list, so parse(generate(x)) reproduces
    the same (name, quantity, category) entries.
    """
    lines: list[str] = []

    commanders = [e for e in entries if e.category is DeckCategory.COMMANDER]
    if commander is not None and not any(e.name == commander.name for e in commanders):
        commanders.insert(0, commander)

    if commanders:
        lines.append("Commander:")
        lines.extend(f"{e.quantity} {e.name}" for e in commanders)
        lines.append("")

    for category, header in GENERATED_HEADERS.items():
        group = [e for e in entries if e.category is category]
        if not group:
            continue

        total = sum(e.quantity for e in group)
        lines.append(f"{header} ({total}):")
        lines.extend(f"{e.quantity} {e.name}" for e in group)
        lines.append("")

    return "\n".join(lines).strip()
