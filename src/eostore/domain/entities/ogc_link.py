"""OGC link entity attached to products."""

from dataclasses import dataclass, fields
from typing import Any, Mapping


@dataclass(frozen=True)
class OgcLink:
    """An OGC service link (WMS, WCS, ...) offered for a product."""

    offering: str
    method: str
    code: str
    href: str
    type: str | None = None

    @classmethod
    def from_mapping(cls, value: "OgcLink | Mapping[str, Any]") -> "OgcLink":
        if isinstance(value, OgcLink):
            return value
        names = {f.name for f in fields(cls)}
        return cls(**{key: item for key, item in value.items() if key in names})

    def to_properties(self) -> dict[str, Any]:
        return {
            "offering": self.offering,
            "method": self.method,
            "code": self.code,
            "type": self.type,
            "href": self.href,
        }
