from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering


@total_ordering
@dataclass(frozen=True)
class Identifier:
    """Coordinates of a package or project: ``type:namespace:name:version``."""

    type: str = ""
    namespace: str = ""
    name: str = ""
    version: str = ""

    @classmethod
    def from_coordinates(cls, coordinates: str) -> "Identifier":
        parts = coordinates.split(":", 3)
        parts += [""] * (4 - len(parts))
        return cls(type=parts[0], namespace=parts[1], name=parts[2], version=parts[3])

    def to_coordinates(self) -> str:
        return f"{self.type}:{self.namespace}:{self.name}:{self.version}"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Identifier):
            return NotImplemented
        return self.to_coordinates() < other.to_coordinates()

    def __str__(self) -> str:
        return self.to_coordinates()
