"""Extra HTTP headers sent with every metastore call.

The header set is parsed once from a `name:value, name:value` string and is
immutable afterwards. Headers owned by the protocol or by authentication
cannot be configured here.
"""

from __future__ import annotations

import re
from typing import Iterable, Iterator, Mapping

from hmsops.core.errors import ConfigError, ConstructionError

RESERVED_HEADERS = frozenset({"authorization", "content-type", "content-length"})

# RFC 7230 token characters; values are printable ASCII
_NAME_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_VALUE_RE = re.compile(r"[\x20-\x7e]*")


def check_header_name(name: str) -> None:
    """Raise ConfigError unless `name` is a valid HTTP header name."""
    if not name:
        raise ConfigError("Header name must not be empty.")
    if not _NAME_RE.fullmatch(name):
        raise ConfigError(f"Invalid header name {name!r}.")


def check_header_value(value: str, *, what: str = "Header value") -> None:
    """Raise ConfigError unless `value` is printable ASCII."""
    if not _VALUE_RE.fullmatch(value):
        raise ConfigError(
            f"{what} must be printable ASCII without control characters."
        )


class HeaderSet(Mapping[str, str]):
    """Ordered, immutable mapping of header name to value."""

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[tuple[str, str]] = ()) -> None:
        seen: set[str] = set()
        pairs: list[tuple[str, str]] = []
        for name, value in items:
            name = name.strip()
            value = value.strip()
            check_header_name(name)
            key = name.lower()
            if key in RESERVED_HEADERS:
                raise ConstructionError(
                    f"Header '{name}' is reserved and cannot be configured."
                )
            if key in seen:
                raise ConfigError(f"Duplicate header '{name}'.")
            check_header_value(value, what=f"Value of header '{name}'")
            seen.add(key)
            pairs.append((name, value))
        self._items = tuple(pairs)

    @classmethod
    def of(cls, headers: Mapping[str, str]) -> "HeaderSet":
        """Build a header set from a mapping, keeping its order."""
        return cls(headers.items())

    def __getitem__(self, name: str) -> str:
        key = name.lower()
        for k, v in self._items:
            if k.lower() == key:
                return v
        raise KeyError(name)

    def __iter__(self) -> Iterator[str]:
        return (k for k, _ in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        # values may carry secrets
        return f"HeaderSet(names={[k for k, _ in self._items]!r})"


EMPTY_HEADERS = HeaderSet()


def parse_headers(value: str | None) -> HeaderSet:
    """
    Parse `key1:value1, key2:value2` into a HeaderSet.

    Whitespace around separators is trimmed and empty entries are ignored.
    Each entry is split at its first colon.

    Raises:
        ConfigError: An entry has no colon, or an invalid name or value.
        ConstructionError: An entry names a reserved header.
    """
    if not value or not value.strip():
        return EMPTY_HEADERS
    pairs: list[tuple[str, str]] = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, header_value = entry.partition(":")
        if not sep:
            raise ConfigError(
                f"Invalid header entry '{entry}': expected the form name:value."
            )
        pairs.append((name, header_value))
    return HeaderSet(pairs)


def format_headers(headers: Mapping[str, str]) -> str:
    """Render a header set back into `name:value, name:value` form."""
    return ", ".join(f"{k}:{v}" for k, v in headers.items())


def apply_headers(
    headers: Mapping[str, str], request_headers: Mapping[str, str]
) -> dict[str, str]:
    """Return new request headers: the protocol headers plus the header set."""
    out = dict(request_headers)
    out.update(headers)
    return out
