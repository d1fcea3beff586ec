"""
Request-side data structures: header view and query parsing.
"""

from collections.abc import Mapping
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union
from urllib.parse import parse_qsl


class Headers(Mapping):
    """
    Read-only, case-insensitive view over ASGI header pairs.

    Lookups use the lower-cased name; repeated headers keep every value in
    arrival order.
    """

    def __init__(self, raw: Iterable[Tuple[bytes, bytes]] = ()):
        self.raw: List[Tuple[bytes, bytes]] = list(raw)
        self._values: Dict[str, List[str]] = {}
        for name, value in self.raw:
            self._values.setdefault(name.decode("latin-1").lower(), []).append(value.decode("latin-1"))

    def __getitem__(self, name: str) -> str:
        return self._values[name.lower()][0]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self._values.get(name.lower())
        return values[0] if values else default

    def get_all(self, name: str) -> List[str]:
        return list(self._values.get(name.lower(), []))

    def to_dict(self) -> Dict[str, str]:
        """Lower-cased names mapped to their values; repeated headers are comma-joined."""
        return {name: ", ".join(values) for name, values in self._values.items()}

    def __repr__(self) -> str:
        return f"Headers({self.to_dict()!r})"


def parse_query(query_string: Union[str, bytes]) -> Dict[str, Any]:
    """
    Parse a query string into a plain dict.

    Keys seen once map to a string, repeated keys map to a list of strings.
    """
    if isinstance(query_string, bytes):
        query_string = query_string.decode("latin-1")
    result: Dict[str, Any] = {}
    for key, value in parse_qsl(query_string, keep_blank_values=True):
        if key not in result:
            result[key] = value
        elif isinstance(result[key], list):
            result[key].append(value)
        else:
            result[key] = [result[key], value]
    return result
