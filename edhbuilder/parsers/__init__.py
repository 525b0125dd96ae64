from edhbuilder.parsers.deck_list import (
    MAX_LINE_LENGTH,
    generate_deck_list_text,
    get_unique_card_names,
    normalize_card_name,
    parse_deck_list,
    validate_commander_deck,
)

__all__ = [
    "MAX_LINE_LENGTH",
    "generate_deck_list_text",
    "get_unique_card_names",
    "normalize_card_name",
    "parse_deck_list",
    "validate_commander_deck",
]
