from dataclasses import dataclass, field
from typing import Optional, Protocol, Dict, Any


@dataclass(frozen=True)
class MetaStatus:
    verified: bool
    verified_name: Optional[str]
    meta_status: str
    raw: Dict[str, Any] = field(default_factory=dict)


class MetaVerifier(Protocol):
    def check(self, phone: str, phone_number_id: Optional[str] = None) -> MetaStatus:
        ...
