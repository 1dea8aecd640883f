"""
Card and Collection Processors

Normalization point between parsing and storage. Both transforms are pure
and total today: they carry every field through unchanged. Schema
validation, field normalization and default-filling belong here and should
raise ValidationFailedError so the import stops before storage is touched.
"""

from cardvault.models import (
    ParsedCharacter,
    ParsedCollection,
    ProcessedCharacter,
    ProcessedCollection,
)


def process_card(character: ParsedCharacter) -> ProcessedCharacter:
    """Process a parsed character (validation, normalization)."""
    return ProcessedCharacter(
        card=character.card,
        thumbnail=character.thumbnail,
        assets=list(character.assets),
    )


def process_collection(collection: ParsedCollection) -> ProcessedCollection:
    """Process a parsed collection."""
    return ProcessedCollection(
        card=collection.card,
        thumbnail=collection.thumbnail,
        members=list(collection.members),
        scenarios=list(collection.scenarios) if collection.scenarios is not None else None,
        original_package=collection.original_package,
    )
