from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List

from .constants import (
    CAPABILITY_AUDIO, CAPABILITY_FILE, CAPABILITY_IMAGE, CAPABILITY_TEXT, CAPABILITY_VIDEO,
)


@dataclass
class CapabilityResult:
    """Capability tokens advertised by the gateway for one identity."""
    identity: str
    capabilities: List[str] = field(default_factory=list)

    @classmethod
    def from_response(cls, identity: str, body: str) -> "CapabilityResult":
        tokens = [t.strip() for t in body.split(",")]
        return cls(identity=identity, capabilities=[t for t in tokens if t])

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def has(self, capability: str) -> bool:
        return capability in self.capabilities

    def can_text(self) -> bool:
        return self.has(CAPABILITY_TEXT)

    def can_image(self) -> bool:
        return self.has(CAPABILITY_IMAGE)

    def can_audio(self) -> bool:
        return self.has(CAPABILITY_AUDIO)

    def can_video(self) -> bool:
        return self.has(CAPABILITY_VIDEO)

    def can_file(self) -> bool:
        return self.has(CAPABILITY_FILE)
