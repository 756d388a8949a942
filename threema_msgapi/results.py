from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .utils import bytes_to_hex


@dataclass
class EncryptResult:
    """
    Output of one encryption step.

    Box envelopes carry a random nonce and no secret; blob encryption carries the
    symmetric key in ``secret`` and one of the fixed blob nonces.
    """
    result: bytes
    secret: Optional[bytes] = None
    nonce: Optional[bytes] = None

    @property
    def size(self) -> int:
        return len(self.result)


@dataclass
class UploadResult:
    response_code: int
    blob_id: Optional[bytes] = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.response_code <= 299 and self.blob_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response_code": self.response_code,
            "blob_id": bytes_to_hex(self.blob_id) if self.blob_id else None,
        }


@dataclass
class ReceiveMessageResult:
    message_id: str
    message: Any
    files: List[Path] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
