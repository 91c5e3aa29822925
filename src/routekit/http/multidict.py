"""
=============================================================================
MULTI-VALUE CONTAINERS
=============================================================================

HTTP is full of keys that can repeat:

    Query string:   ?tag=a&tag=b            → tag: ["a", "b"]
    Form body:      test=1&test=2           → test: ["1", "2"]
    Headers:        Set-Cookie: a=1
                    Set-Cookie: b=2         → set-cookie: ["a=1", "b=2"]

A plain dict of strings loses the repeats, and a dict that is "sometimes
a string, sometimes a list" forces every caller to check. These
containers ALWAYS map a key to a non-empty, ordered list:

    ┌───────────────────────┬──────────────────────────────────────────┐
    │  Operation            │  Result                                  │
    ├───────────────────────┼──────────────────────────────────────────┤
    │  m["tag"]             │  ["a", "b"]        (KeyError if missing) │
    │  m.first("tag")       │  "a"               (None if missing)     │
    │  m.get_all("tag")     │  ["a", "b"]        ([] if missing)       │
    │  m.add("tag", "c")    │  ["a", "b", "c"]                         │
    │  m["tag"] = "x"       │  ["x"]                                   │
    │  m["tag"] = []        │  key removed                             │
    └───────────────────────┴──────────────────────────────────────────┘

A present key never maps to an empty list: absence is "key not found".

Headers is the same container with case-insensitive keys. The spelling
used when a header was first added is kept for serialization.

=============================================================================
"""

from collections.abc import MutableMapping
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union


class MultiDict(MutableMapping):
    """
    Ordered mapping from key to a non-empty list of values.

    Insertion order of keys is preserved, and so is the order of values
    under each key.
    """

    def __init__(
        self,
        items: Union[None, "MultiDict", Dict[str, Any], Iterable[Tuple[str, Any]]] = None,
    ):
        # folded key → (key as first seen, values)
        self._store: Dict[str, Tuple[str, List[Any]]] = {}
        if items is None:
            return
        if isinstance(items, MultiDict):
            for key, value in items.multi_items():
                self.add(key, value)
        elif isinstance(items, dict):
            for key, value in items.items():
                self[key] = value
        else:
            for key, value in items:
                self.add(key, value)

    def _fold(self, key: str) -> str:
        """Normalize a key for lookups. Identity here, lowercase for Headers."""
        return key

    # =========================================================================
    # MAPPING PROTOCOL
    # =========================================================================

    def __getitem__(self, key: str) -> List[Any]:
        return list(self._store[self._fold(key)][1])

    def __setitem__(self, key: str, value: Any) -> None:
        if isinstance(value, (list, tuple)):
            values = list(value)
        else:
            values = [value]
        folded = self._fold(key)
        if not values:
            self._store.pop(folded, None)
            return
        original = self._store[folded][0] if folded in self._store else key
        self._store[folded] = (original, values)

    def __delitem__(self, key: str) -> None:
        del self._store[self._fold(key)]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self._fold(key) in self._store

    def __repr__(self) -> str:
        inner = ", ".join(f"{k!r}: {v!r}" for k, v in self.items())
        return f"{type(self).__name__}({{{inner}}})"

    # =========================================================================
    # MULTI-VALUE ACCESSORS
    # =========================================================================

    def add(self, key: str, value: Any) -> None:
        """Append a value under key, creating the key if needed."""
        folded = self._fold(key)
        if folded in self._store:
            self._store[folded][1].append(value)
        else:
            self._store[folded] = (key, [value])

    def first(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        """
        Get the first value for key.

        Example:
            # Body: test=testing1&test=testing2
            request.data.first("test")     # "testing1"
            request.data.first("missing")  # None
        """
        entry = self._store.get(self._fold(key))
        if entry is None:
            return default
        return entry[1][0]

    def get_all(self, key: str) -> List[Any]:
        """Get every value for key, or an empty list if the key is absent."""
        entry = self._store.get(self._fold(key))
        return list(entry[1]) if entry else []

    def multi_items(self) -> Iterator[Tuple[str, Any]]:
        """Yield (key, value) once per value, in order."""
        for original, values in self._store.values():
            for value in values:
                yield original, value

    def copy(self) -> "MultiDict":
        return type(self)(self)


class Headers(MultiDict):
    """
    Case-insensitive multi-value header map.

    Header names are case-insensitive per RFC 7230, so "Content-Type",
    "content-type" and "CONTENT-TYPE" are the same key. The spelling from
    the first add() is what goes on the wire.

        headers = Headers()
        headers.add("Set-Cookie", "a=1")
        headers.add("set-cookie", "b=2")
        headers["SET-COOKIE"]           # ["a=1", "b=2"]
        headers.get_first("Set-Cookie")  # "a=1"
    """

    def _fold(self, key: str) -> str:
        return key.lower()

    def get_first(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Alias of first() that reads better at header call sites."""
        return self.first(name, default)

    def set(self, name: str, value: str) -> None:
        """Replace every value of a header with a single value."""
        self[name] = [value]
