"""
Deploy cache.

The cache file records which items have been uploaded and which are on
chain. Item "-1" is the reserved collection slot. Keys are camelCase on disk
so the file stays compatible with existing cache.json files.
"""

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError

from mintforge.models.failure import InvalidInputError

COLLECTION_ITEM_KEY = "-1"


class CacheItem(BaseModel):
    """A single uploaded asset."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    image_hash: str = ""
    image_link: str = ""
    metadata_hash: str = ""
    # Off-ledger metadata URI written into the on-chain metadata record
    metadata_link: str = ""
    on_chain: bool = Field(default=False, alias="onChain")
    animation_hash: str | None = None
    animation_link: str | None = None


class CacheProgram(BaseModel):
    """Program-level section of the cache."""

    model_config = ConfigDict(populate_by_name=True)

    candy_machine: str = Field(default="", alias="candyMachine")
    candy_guard: str = Field(default="", alias="candyGuard")
    candy_machine_creator: str = Field(default="", alias="candyMachineCreator")
    collection_mint: str = Field(default="", alias="collectionMint")


class Cache(BaseModel):
    """
    The full cache: program section plus items keyed by index string.

    The cache is a single-writer resource. Callers running several deploys
    at once must serialize access themselves.
    """

    model_config = ConfigDict(populate_by_name=True)

    program: CacheProgram = Field(default_factory=CacheProgram)
    items: dict[str, CacheItem] = Field(default_factory=dict)

    _file_path: Path | None = PrivateAttr(default=None)

    @property
    def file_path(self) -> Path | None:
        return self._file_path

    @classmethod
    def load(cls, path: str | Path) -> "Cache":
        """
        Load a cache file.

        Args:
            path: Path to cache.json

        Returns:
            The parsed Cache, bound to `path` for later syncs

        Raises:
            InvalidInputError: If the file is missing or malformed
        """
        cache_path = Path(path)
        if not cache_path.exists():
            raise InvalidInputError(
                f"Cache file not found: {cache_path}",
                suggestion="Run the upload step first to create the cache.",
            )

        try:
            cache = cls.model_validate_json(cache_path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise InvalidInputError(f"Invalid cache file: {cache_path}", detail=str(e)) from e

        cache._file_path = cache_path
        return cache

    def bind(self, path: str | Path) -> "Cache":
        """Set the file this cache syncs to."""
        self._file_path = Path(path)
        return self

    def sync_file(self) -> None:
        """
        Write the cache back to its file.

        Raises:
            InvalidInputError: If the cache was never bound to a file
        """
        if self._file_path is None:
            raise InvalidInputError("Cache has no file to sync to")

        payload = self.model_dump(by_alias=True)
        self._file_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def collection_item(self) -> CacheItem | None:
        """Get the reserved collection item, if present."""
        return self.items.get(COLLECTION_ITEM_KEY)
