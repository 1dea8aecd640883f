"""
Storage Adapter Interface

Persistence boundary for the import pipeline. The durable (relational store
plus filesystem blobs) and ephemeral (browser key-value store with data URLs)
backends both implement this interface; the import service depends on
nothing else.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Union

from cardvault.models import AssetData, AssetLink, CardData


@dataclass
class CreatedCard:
    """Result of create_card()."""
    card_id: str


@dataclass
class CreatedAsset:
    """Result of create_asset()."""
    asset_id: str
    url: str


class StorageAdapter(ABC):
    """
    Base class for all storage backends.

    Adapters must implement:
    - create_card() / update_card() / set_card_image() - card operations
    - create_asset() / link_asset_to_card() - asset operations
    - link_card_to_collection() - collection membership

    All operations are coroutines so blocking and non-blocking backends look
    the same to the caller. Backends shared by concurrent imports must make
    id generation and multi-call writes safe on their own.

    Optional:
    - transaction() - scope wrapping one entity's call sequence
    """

    # ============================================================================
    # CARD OPERATIONS
    # ============================================================================

    @abstractmethod
    async def create_card(self, data: CardData) -> CreatedCard:
        """
        Create a new card.

        Args:
            data: Card metadata and payload

        Returns:
            CreatedCard with the new card id
        """
        pass

    @abstractmethod
    async def update_card(self, card_id: str, data: dict) -> None:
        """
        Update an existing card.

        Args:
            card_id: Card to update
            data: Partial card data ('meta' and/or 'data' keys)
        """
        pass

    @abstractmethod
    async def set_card_image(self, card_id: str, image_data: Union[bytes, str]) -> None:
        """
        Set the card's main image.

        Args:
            card_id: Card id
            image_data: Image bytes or a data URL
        """
        pass

    # ============================================================================
    # ASSET OPERATIONS
    # ============================================================================

    @abstractmethod
    async def create_asset(self, asset_data: AssetData) -> CreatedAsset:
        """
        Store an asset's bytes.

        Returns:
            CreatedAsset with the asset id and a URL for reading it back
        """
        pass

    @abstractmethod
    async def link_asset_to_card(self, card_id: str, asset_id: str, link: AssetLink) -> None:
        """Attach a stored asset to a card with its type, tags and order."""
        pass

    # ============================================================================
    # COLLECTION OPERATIONS
    # ============================================================================

    @abstractmethod
    async def link_card_to_collection(self, child_card_id: str, collection_card_id: str) -> None:
        """Mark a member card as belonging to a collection card."""
        pass

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Scope around the calls that persist one card and its assets.

        The import service enters this once per entity. Backends override it
        to commit on normal exit and roll back (or delete what was written)
        when the block raises. The default does nothing.
        """
        yield
