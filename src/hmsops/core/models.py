"""Core domain models for the metastore catalog.

These models represent metastore entities in a simple, immutable form.
They are intentionally free of Thrift types and UI/CLI concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping


class PrincipalType(str, Enum):
    """Kind of principal owning a metastore object."""

    USER = "USER"
    ROLE = "ROLE"
    GROUP = "GROUP"


@dataclass(frozen=True)
class Database:
    """
    Lightweight representation of a metastore database.

    Attributes:
        name: Database name, unique within its catalog.
        description: Optional free-text comment.
        location_uri: Optional storage location of the database.
        parameters: Arbitrary key-value properties. Compared by equality but
            left out of the hash.
        owner_name: Optional owning principal.
        owner_type: Kind of the owning principal.
        catalog_name: Optional catalog the database belongs to.
    """

    name: str
    description: str | None = None
    location_uri: str | None = None
    parameters: Mapping[str, str] = field(default_factory=dict, hash=False)
    owner_name: str | None = None
    owner_type: PrincipalType | None = None
    catalog_name: str | None = None
