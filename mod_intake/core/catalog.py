"""Master catalog entities that scanned folders are matched against."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class CatalogEntity:
    name: str
    object_type: str = "Other"
    id: Optional[int] = None
    tags: Tuple[str, ...] = ()
    thumbnail_path: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogEntity":
        tags = data.get("tags") or ()
        return cls(
            name=str(data.get("name", "")).strip(),
            object_type=str(data.get("object_type") or data.get("objectType") or "Other"),
            id=data.get("id"),
            tags=tuple(str(t) for t in tags),
            thumbnail_path=data.get("thumbnail_path") or data.get("thumbnailPath"),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["tags"] = list(self.tags)
        return payload
