"""Group control messages: membership, name, photo and sync requests."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List

from ..constants import BLOB_ID_LEN, BLOB_KEY_LEN, IDENTITY_LEN
from ..exceptions import BadMessage
from ..utils import pack_uint32_le, unpack_uint32_le
from .base import GroupScope, ThreemaMessage, decode_text
from .types import GroupId, identity_bytes


@dataclass
class GroupCreateMessage(ThreemaMessage):
    TYPE_CODE = 0x4a
    GROUP_SCOPE = GroupScope.ID_ONLY

    group: GroupId
    members: List[str] = field(default_factory=list)

    def body(self) -> bytes:
        # Member order is kept as given by the caller.
        return b"".join(identity_bytes(m) for m in self.members)

    @classmethod
    def parse_body(cls, body, group):
        if len(body) % IDENTITY_LEN != 0:
            raise BadMessage(f"bad length ({len(body) + 9}) for group create message")
        try:
            members = [
                body[i:i + IDENTITY_LEN].decode("ascii")
                for i in range(0, len(body), IDENTITY_LEN)
            ]
        except UnicodeDecodeError as e:
            raise BadMessage("group member is not a valid identity") from e
        return cls(group, members)


@dataclass
class GroupRenameMessage(ThreemaMessage):
    TYPE_CODE = 0x4b
    GROUP_SCOPE = GroupScope.ID_ONLY

    group: GroupId
    name: str

    def body(self) -> bytes:
        return self.name.encode("utf-8")

    @classmethod
    def parse_body(cls, body, group):
        return cls(group, decode_text(body, "group rename message"))


@dataclass
class GroupLeaveMessage(ThreemaMessage):
    TYPE_CODE = 0x4c
    GROUP_SCOPE = GroupScope.CREATOR_AND_ID

    group: GroupId

    def body(self) -> bytes:
        return b""

    @classmethod
    def parse_body(cls, body, group):
        if body:
            raise BadMessage(f"bad length ({len(body) + 17}) for group leave message")
        return cls(group)


@dataclass
class GroupSetPhotoMessage(ThreemaMessage):
    TYPE_CODE = 0x50
    GROUP_SCOPE = GroupScope.ID_ONLY
    BODY_LEN = BLOB_ID_LEN + 4 + BLOB_KEY_LEN

    group: GroupId
    blob_id: bytes
    size: int
    encryption_key: bytes

    def body(self) -> bytes:
        return self.blob_id + pack_uint32_le(self.size) + self.encryption_key

    @classmethod
    def parse_body(cls, body, group):
        if len(body) != cls.BODY_LEN:
            raise BadMessage(f"bad length ({len(body) + 9}) for group set photo message")
        return cls(
            group,
            blob_id=body[:BLOB_ID_LEN],
            size=unpack_uint32_le(body, BLOB_ID_LEN),
            encryption_key=body[BLOB_ID_LEN + 4:],
        )


@dataclass
class GroupDeletePhotoMessage(ThreemaMessage):
    TYPE_CODE = 0x54
    GROUP_SCOPE = GroupScope.ID_ONLY

    group: GroupId

    def body(self) -> bytes:
        return b""

    @classmethod
    def parse_body(cls, body, group):
        return cls(group)


@dataclass
class GroupRequestSyncMessage(ThreemaMessage):
    TYPE_CODE = 0x51
    GROUP_SCOPE = GroupScope.ID_ONLY

    group: GroupId

    def body(self) -> bytes:
        return b""

    @classmethod
    def parse_body(cls, body, group):
        return cls(group)
