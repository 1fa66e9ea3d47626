"""Document-database domain types with their own wire tags."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, Iterator, List, Mapping, Optional, TypeVar, Union

T = TypeVar("T")


def _as_module(coll: Union[str, "Module"]) -> "Module":
    if isinstance(coll, Module):
        return coll
    if isinstance(coll, str) and coll:
        return Module(coll)
    raise TypeError("collection must be a non-empty string or Module")


@dataclass(frozen=True)
class Module:
    """A named module such as a collection or a built-in namespace."""

    name: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("module name must be a non-empty string")

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class DocumentReference:
    """Reference to a document by collection and id."""

    coll: Module
    id: str

    def __init__(self, coll: Union[str, Module], id: Union[str, int]):
        object.__setattr__(self, "coll", _as_module(coll))
        object.__setattr__(self, "id", str(id))

    @classmethod
    def from_string(cls, ref: str) -> "DocumentReference":
        """Parse the compact ``Collection:id`` form."""
        coll, sep, doc_id = ref.partition(":")
        if not sep or not coll or not doc_id or ":" in doc_id:
            raise ValueError(f"expected a reference of the form 'Collection:id', got {ref!r}")
        return cls(coll, doc_id)

    def __str__(self) -> str:
        return f"{self.coll.name}:{self.id}"


@dataclass(frozen=True)
class NamedDocumentReference:
    """Reference to a schema document, identified by name."""

    coll: Module
    name: str

    def __init__(self, coll: Union[str, Module], name: str):
        object.__setattr__(self, "coll", _as_module(coll))
        object.__setattr__(self, "name", name)

    def __str__(self) -> str:
        return f"{self.coll.name}:{self.name}"


Reference = Union[DocumentReference, NamedDocumentReference]


class _DocumentBase:
    data: Dict[str, Any]

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __contains__(self, key: object) -> bool:
        return key in self.data

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


@dataclass(eq=True)
class Document(_DocumentBase):
    """A document with an id. User fields live in ``data``."""

    id: str
    coll: Module
    ts: Optional[datetime] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.coll = _as_module(self.coll)
        self.id = str(self.id)

    @property
    def ref(self) -> DocumentReference:
        return DocumentReference(self.coll, self.id)


@dataclass(eq=True)
class NamedDocument(_DocumentBase):
    """A schema document (collection, function, role...) identified by name."""

    name: str
    coll: Module
    ts: Optional[datetime] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.coll = _as_module(self.coll)

    @property
    def ref(self) -> NamedDocumentReference:
        return NamedDocumentReference(self.coll, self.name)


@dataclass(frozen=True)
class NullDocument:
    """A reference to a document that does not exist, with the reason why."""

    ref: Reference
    cause: Optional[str] = None

    def __bool__(self) -> bool:
        return False


@dataclass(eq=True)
class Page(Generic[T]):
    """One batch of a set. ``after`` is the cursor for the next batch, if any.

    ``data`` is None for a set that was returned as a cursor only. Decoding
    into ``Page[Product]`` converts each item to ``Product``.
    """

    data: Optional[List[T]] = None
    after: Optional[str] = None

    def __iter__(self) -> Iterator[T]:
        return iter(self.data or [])

    def __len__(self) -> int:
        return len(self.data or [])

    @property
    def has_next(self) -> bool:
        return self.after is not None


_DOCUMENT_META_KEYS = frozenset({"coll", "ts"})


def document_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the user fields of a decoded document payload.

    A document with an ``id`` may have a user field called ``name``; only
    the identifying key is treated as metadata.
    """
    identity = "id" if "id" in payload else "name"
    return {
        key: value
        for key, value in payload.items()
        if key != identity and key not in _DOCUMENT_META_KEYS
    }
