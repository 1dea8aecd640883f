"""Shared fixtures and builders for the card import tests."""

import asyncio
import base64
import copy
import io
import json
import zipfile
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
from PIL import Image, PngImagePlugin

from cardvault.models import AssetData, AssetLink, CardData
from cardvault.repositories import CreatedAsset, CreatedCard, StorageAdapter


# ===========================
# File builders
# ===========================

def make_png(size=(4, 3), color=(200, 40, 40), text_chunks: Optional[Dict[str, str]] = None) -> bytes:
    """Create a small RGB PNG, optionally with tEXt chunks."""
    info = PngImagePlugin.PngInfo()
    for key, value in (text_chunks or {}).items():
        info.add_text(key, value)
    out = io.BytesIO()
    Image.new("RGB", size, color).save(out, format="PNG", pnginfo=info)
    return out.getvalue()


def encode_card(card: Dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(card).encode("utf-8")).decode("ascii")


def make_card_png(card: Dict[str, Any], keyword: str = "chara", **chunks: str) -> bytes:
    """PNG with a card embedded as base64 JSON under `keyword`."""
    text = {keyword: encode_card(card)}
    text.update(chunks)
    return make_png(text_chunks=text)


def embed_text_chunk(png_data: bytes, keyword: str, text: str) -> bytes:
    """Re-save a PNG with `text` base64-encoded under `keyword`, keeping its other text chunks."""
    with Image.open(io.BytesIO(png_data)) as image:
        info = PngImagePlugin.PngInfo()
        for key, value in image.text.items():
            if key.lower() != keyword.lower():
                info.add_text(key, value)
        info.add_text(keyword, base64.b64encode(text.encode("utf-8")).decode("ascii"))
        out = io.BytesIO()
        image.save(out, format="PNG", pnginfo=info)
    return out.getvalue()


def make_gif(frames: int = 1) -> bytes:
    """GIF with the given number of frames (animated GIFs loop forever)."""
    images = [Image.new("P", (5, 7), i * 40) for i in range(frames)]
    out = io.BytesIO()
    if frames > 1:
        images[0].save(out, format="GIF", save_all=True, append_images=images[1:], loop=0, duration=100)
    else:
        images[0].save(out, format="GIF")
    return out.getvalue()


def make_jpeg(size=(8, 6)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", size, (10, 120, 10)).save(out, format="JPEG")
    return out.getvalue()


Entry = Union[bytes, str, Dict[str, Any], List[Any]]


def make_zip(entries: Dict[str, Entry]) -> bytes:
    """ZIP archive; dict/list entries are written as JSON."""
    out = io.BytesIO()
    with zipfile.ZipFile(out, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in entries.items():
            if isinstance(content, (dict, list)):
                content = json.dumps(content)
            if isinstance(content, str):
                content = content.encode("utf-8")
            archive.writestr(name, content)
    return out.getvalue()


# ===========================
# Card documents
# ===========================

def v2_card(name: str = "Test Character") -> Dict[str, Any]:
    return {
        "spec": "chara_card_v2",
        "spec_version": "2.0",
        "data": {
            "name": name,
            "description": "A test character",
            "personality": "Friendly and helpful",
            "scenario": "Testing scenario",
            "first_mes": "Hello! I am a test character.",
            "mes_example": "<START>\n{{user}}: Hi\n{{char}}: Hello!",
            "creator": "Tester",
            "character_version": "1.2",
            "tags": ["test", "v2"],
        },
    }


def v3_card(name: str = "Test Character V3", assets: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    data = {
        "name": name,
        "description": "A test character for v3",
        "personality": "Friendly and helpful",
        "scenario": "Testing scenario",
        "first_mes": "Hello from v3!",
        "mes_example": "<START>\n{{user}}: Hi\n{{char}}: Hello!",
        "creator": "Test Creator",
        "character_version": "1.0.0",
        "tags": ["test"],
        "extensions": {},
    }
    if assets is not None:
        data["assets"] = assets
    return {"spec": "chara_card_v3", "spec_version": "3.0", "data": data}


def lorebook(name: str = "Test Lorebook") -> Dict[str, Any]:
    return {
        "name": name,
        "description": "A test lorebook",
        "entries": [
            {
                "keys": ["magic", "spell"],
                "content": "Magic is powerful in this world.",
                "enabled": True,
                "insertion_order": 0,
            }
        ],
    }


def voxta_character(char_id: str, name: str, **extra: Any) -> Dict[str, Any]:
    character = {
        "$type": "character",
        "Id": char_id,
        "Name": name,
        "Version": "1.0.0",
        "Description": f"{name} has silver hair",
        "Personality": "Curious",
        "Profile": f"{name} is a wandering scholar.",
        "Scenario": "A quiet library",
        "FirstMessage": "Welcome, traveler.",
        "MessageExamples": "{{char}}: Hello.",
        "Creator": "Voxta Author",
        "Tags": ["scholar"],
    }
    character.update(extra)
    return character


def to_json_bytes(document: Any) -> bytes:
    return json.dumps(document).encode("utf-8")


# ===========================
# In-memory storage
# ===========================

class StorageFailure(RuntimeError):
    """Injected backend failure."""


class MemoryStorageAdapter(StorageAdapter):
    """
    Storage adapter that keeps everything in dicts and records each call.

    transaction() snapshots state and restores it when the block raises, the
    way a transactional backend rolls back. `fail_when(method, args)` lets a
    test inject failures.
    """

    def __init__(self, fail_when: Optional[Callable[[str, tuple], bool]] = None, transactional: bool = True):
        self.fail_when = fail_when
        self.transactional = transactional
        self.calls: List[tuple] = []
        self.cards: Dict[str, CardData] = {}
        self.card_updates: Dict[str, List[dict]] = {}
        self.card_images: Dict[str, Union[bytes, str]] = {}
        self.assets: Dict[str, AssetData] = {}
        self.asset_links: List[Dict[str, Any]] = []
        self.collection_links: List[Dict[str, str]] = []
        self._next_id = 0
        self._lock = asyncio.Lock()

    async def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if self.fail_when is not None and self.fail_when(method, args):
            raise StorageFailure(f"{method} failed")

    async def _new_id(self, prefix: str) -> str:
        async with self._lock:
            self._next_id += 1
            return f"{prefix}-{self._next_id}"

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def orphan_assets(self) -> List[str]:
        """Asset ids with no link to an existing card."""
        owned = {link["asset_id"] for link in self.asset_links if link["card_id"] in self.cards}
        return [asset_id for asset_id in self.assets if asset_id not in owned]

    def links_for(self, card_id: str) -> List[Dict[str, Any]]:
        return [link for link in self.asset_links if link["card_id"] == card_id]

    async def create_card(self, data: CardData) -> CreatedCard:
        await self._record("create_card", data)
        card_id = await self._new_id("card")
        self.cards[card_id] = data
        return CreatedCard(card_id=card_id)

    async def update_card(self, card_id: str, data: dict) -> None:
        await self._record("update_card", card_id, data)
        if card_id not in self.cards:
            raise KeyError(card_id)
        self.card_updates.setdefault(card_id, []).append(data)

    async def set_card_image(self, card_id: str, image_data: Union[bytes, str]) -> None:
        await self._record("set_card_image", card_id, image_data)
        self.card_images[card_id] = image_data

    async def create_asset(self, asset_data: AssetData) -> CreatedAsset:
        await self._record("create_asset", asset_data)
        asset_id = await self._new_id("asset")
        self.assets[asset_id] = asset_data
        return CreatedAsset(asset_id=asset_id, url=f"/assets/{asset_id}/{asset_data.filename}")

    async def link_asset_to_card(self, card_id: str, asset_id: str, link: AssetLink) -> None:
        await self._record("link_asset_to_card", card_id, asset_id, link)
        self.asset_links.append({"card_id": card_id, "asset_id": asset_id, "link": link})

    async def link_card_to_collection(self, child_card_id: str, collection_card_id: str) -> None:
        await self._record("link_card_to_collection", child_card_id, collection_card_id)
        self.collection_links.append({"child": child_card_id, "collection": collection_card_id})

    @asynccontextmanager
    async def transaction(self):
        if not self.transactional:
            yield
            return

        snapshot = (
            dict(self.cards),
            copy.deepcopy(self.card_updates),
            dict(self.card_images),
            dict(self.assets),
            list(self.asset_links),
            list(self.collection_links),
        )
        try:
            yield
        except BaseException:
            (self.cards, self.card_updates, self.card_images,
             self.assets, self.asset_links, self.collection_links) = snapshot
            raise


# ===========================
# Fixtures
# ===========================

@pytest.fixture
def storage() -> MemoryStorageAdapter:
    return MemoryStorageAdapter()


@pytest.fixture
def card_png() -> bytes:
    return make_card_png(v2_card("Aria"))


@pytest.fixture
def charx_package() -> bytes:
    """CHARX with main icon, a background, an emotion and an unreferenced sound."""
    card = v3_card("Charx Hero", assets=[
        {"type": "icon", "uri": "embeded://assets/icon/images/main.png", "name": "main", "ext": "png"},
        {"type": "background", "uri": "embeded://assets/background/images/forest.jpg", "name": "forest", "ext": "jpg"},
        {"type": "emotion", "uri": "embeded://assets/emotion/images/happy.gif", "name": "happy", "ext": "gif"},
        {"type": "icon", "uri": "ccdefault:", "name": "fallback", "ext": "png"},
    ])
    return make_zip({
        "card.json": card,
        "assets/icon/images/main.png": make_png(),
        "assets/background/images/forest.jpg": make_jpeg(),
        "assets/emotion/images/happy.gif": make_gif(frames=3),
        "assets/other/audio/theme.mp3": b"ID3fake-mp3",
        "x_meta/1.json": {"type": "png"},
    })


@pytest.fixture
def voxta_collection_package() -> bytes:
    """Voxta package with two characters, one scenario, one memory book."""
    return make_zip({
        "package.json": {
            "$type": "package",
            "Id": "pkg-1",
            "Name": "Library Friends",
            "Version": "2.0.0",
            "Description": "Two scholars",
            "Creator": "Voxta Author",
            "ThumbnailResource": {"Kind": 3, "Id": "scn-1"},
        },
        "Characters/char-a/character.json": voxta_character(
            "char-a", "Iris", MemoryBooks=["book-1"], DefaultScenarios=["scn-2"]
        ),
        "Characters/char-a/thumbnail.png": make_png(color=(1, 1, 1)),
        "Characters/char-a/Assets/Avatars/Default/Happy_Talking_01.webp": b"RIFF\x00\x00\x00\x00WEBPVP8X....ANIM....",
        "Characters/char-a/Assets/VoiceSamples/hello.wav": b"RIFF....WAVEfmt ",
        "Characters/char-b/character.json": voxta_character("char-b", "Oren"),
        "Characters/char-b/thumbnail.png": make_png(color=(2, 2, 2)),
        "Scenarios/scn-1/scenario.json": {
            "$type": "scenario",
            "Id": "scn-1",
            "Name": "Midnight Study",
            "Description": "Both scholars at work",
            "Roles": [{"CharacterId": "char-a"}, {"CharacterId": "char-b"}, {"CharacterId": "char-a"}],
            "ExplicitContent": False,
        },
        "Scenarios/scn-1/thumbnail.png": make_png(color=(3, 3, 3)),
        "Books/book-1/book.json": {
            "$type": "book",
            "Id": "book-1",
            "Name": "Library Lore",
            "Items": [
                {"Id": "i1", "Keywords": ["archive"], "Text": "The archive never closes."},
                {"Id": "i2", "Keywords": ["old"], "Text": "Removed", "Deleted": True},
            ],
        },
    })
