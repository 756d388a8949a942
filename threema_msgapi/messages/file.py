from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..constants import BLOB_ID_LEN, BLOB_KEY_LEN, NONCE_LEN
from ..exceptions import BadMessage, InvalidHex
from ..utils import bytes_to_hex, compact_json, hex_to_bytes, pack_uint32_le, unpack_uint32_le
from .base import GroupScope, ThreemaMessage, decode_json
from .types import GroupId, RenderingType, enum_value


def _optional(o: Dict[str, Any], key: str, kind: type, what: str):
    value = o.get(key)
    if value is not None and not isinstance(value, kind):
        raise BadMessage(f"file message field {key!r} ({what}) has type {type(value).__name__}")
    return value


@dataclass
class FileContent:
    """Fields shared by the 1:1 and group file messages, keyed as on the wire."""
    blob_id: bytes
    encryption_key: bytes
    mime_type: str
    size: int
    thumbnail_blob_id: Optional[bytes] = None
    thumbnail_media_type: Optional[str] = None
    file_name: Optional[str] = None
    caption: Optional[str] = None
    rendering_type: RenderingType = RenderingType.FILE
    correlation_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_json(self) -> bytes:
        o: Dict[str, Any] = {"b": bytes_to_hex(self.blob_id)}
        if self.thumbnail_blob_id is not None:
            o["t"] = bytes_to_hex(self.thumbnail_blob_id)
        if self.thumbnail_media_type is not None:
            o["p"] = self.thumbnail_media_type
        o["k"] = bytes_to_hex(self.encryption_key)
        o["m"] = self.mime_type
        if self.file_name is not None:
            o["n"] = self.file_name
        o["s"] = self.size
        if self.caption is not None:
            o["d"] = self.caption
        o["j"] = int(self.rendering_type)
        if self.correlation_id is not None:
            o["c"] = self.correlation_id
        if self.metadata is not None:
            o["x"] = self.metadata
        return compact_json(o)

    @classmethod
    def from_json(cls, body: bytes) -> "FileContent":
        o = decode_json(body, "file message")
        if not isinstance(o, dict):
            raise BadMessage("file message JSON must be an object")
        try:
            blob_id = hex_to_bytes(o["b"])
            key = hex_to_bytes(o["k"])
            thumb = hex_to_bytes(o["t"]) if o.get("t") else None
            if not isinstance(o["m"], str):
                raise BadMessage("file message field 'm' (media type) must be a string")
            content = cls(
                blob_id=blob_id,
                encryption_key=key,
                mime_type=o["m"],
                size=int(o["s"]),
                thumbnail_blob_id=thumb,
                thumbnail_media_type=_optional(o, "p", str, "thumbnail media type"),
                file_name=_optional(o, "n", str, "file name"),
                caption=_optional(o, "d", str, "caption"),
                rendering_type=enum_value(RenderingType, o.get("j", 0)),
                correlation_id=_optional(o, "c", str, "correlation id"),
                metadata=_optional(o, "x", dict, "metadata"),
            )
        except KeyError as e:
            raise BadMessage(f"file message is missing key {e.args[0]!r}") from e
        except (InvalidHex, TypeError, ValueError) as e:
            raise BadMessage(f"malformed file message: {e}") from e
        if len(blob_id) != BLOB_ID_LEN or len(key) != BLOB_KEY_LEN:
            raise BadMessage("bad blob id or key length in file message")
        if thumb is not None and len(thumb) != BLOB_ID_LEN:
            raise BadMessage("bad thumbnail blob id length in file message")
        return content


@dataclass
class FileMessage(ThreemaMessage):
    TYPE_CODE = 0x17
    MIN_BODY_LEN = 2

    file: FileContent

    def body(self) -> bytes:
        return self.file.to_json()

    @classmethod
    def parse_body(cls, body, group):
        return cls(FileContent.from_json(body))


@dataclass
class GroupFileMessage(ThreemaMessage):
    TYPE_CODE = 0x46
    GROUP_SCOPE = GroupScope.CREATOR_AND_ID
    MIN_BODY_LEN = 2

    group: GroupId
    file: FileContent

    def body(self) -> bytes:
        return self.file.to_json()

    @classmethod
    def parse_body(cls, body, group):
        return cls(group, FileContent.from_json(body))


@dataclass
class ImageMessage(ThreemaMessage):
    """Legacy image message; the blob is box-encrypted with ``nonce``."""
    TYPE_CODE = 0x02
    BODY_LEN = BLOB_ID_LEN + 4 + NONCE_LEN

    blob_id: bytes
    size: int
    nonce: bytes

    def body(self) -> bytes:
        return self.blob_id + pack_uint32_le(self.size) + self.nonce

    @classmethod
    def parse_body(cls, body, group):
        if len(body) != cls.BODY_LEN:
            raise BadMessage(f"bad length ({len(body) + 1}) for image message")
        return cls(
            blob_id=body[:BLOB_ID_LEN],
            size=unpack_uint32_le(body, BLOB_ID_LEN),
            nonce=body[BLOB_ID_LEN + 4:],
        )
