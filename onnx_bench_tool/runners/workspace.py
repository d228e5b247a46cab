from __future__ import annotations

from typing import Iterator, Optional

from .tensors import Blob


class TensorStore:
    """Named container of blobs for one benchmark invocation.

    Blob names are unique; iteration order carries no meaning.
    """

    def __init__(self) -> None:
        self._blobs: dict[str, Blob] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._blobs

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._blobs))

    def __len__(self) -> int:
        return len(self._blobs)

    def __getitem__(self, name: str) -> Blob:
        return self._blobs[name]

    def has_blob(self, name: str) -> bool:
        return name in self._blobs

    def get_blob(self, name: str) -> Optional[Blob]:
        return self._blobs.get(name)

    def create_blob(self, name: str) -> Blob:
        """Return the blob called ``name``, creating an empty one if needed."""

        blob = self._blobs.get(name)
        if blob is None:
            blob = Blob(name)
            self._blobs[name] = blob
        return blob

    def put_blob(self, blob: Blob) -> Blob:
        """Store ``blob`` under its own name, replacing any existing blob."""

        self._blobs[blob.name] = blob
        return blob

    def remove_blob(self, name: str) -> bool:
        return self._blobs.pop(name, None) is not None

    def blobs(self) -> list[str]:
        return list(self._blobs)
