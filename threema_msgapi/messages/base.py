from __future__ import annotations
from enum import Enum
from typing import ClassVar, Optional, Tuple
import json

from ..constants import GROUP_ID_LEN, IDENTITY_LEN
from ..exceptions import BadMessage
from .types import GroupId


class GroupScope(Enum):
    NONE = "none"
    CREATOR_AND_ID = "creator_and_id"  # creator ‖ group-id
    ID_ONLY = "id_only"                # group-id


class ThreemaMessage:
    """
    Base for every end-to-end message variant.

    Subclasses set ``TYPE_CODE`` and ``GROUP_SCOPE`` and implement ``body()`` and
    ``parse_body()``. The group prefix is written and read here, so variant bodies
    never handle it themselves.
    """
    TYPE_CODE: ClassVar[int]
    GROUP_SCOPE: ClassVar[GroupScope] = GroupScope.NONE
    MIN_BODY_LEN: ClassVar[int] = 0

    def body(self) -> bytes:
        raise NotImplementedError

    @classmethod
    def parse_body(cls, body: bytes, group: Optional[GroupId]) -> "ThreemaMessage":
        raise NotImplementedError

    def to_bytes(self) -> bytes:
        return bytes([self.TYPE_CODE]) + self.group_prefix() + self.body()

    def group_prefix(self) -> bytes:
        if self.GROUP_SCOPE is GroupScope.CREATOR_AND_ID:
            return self.group.creator_bytes + self.group.group_id
        if self.GROUP_SCOPE is GroupScope.ID_ONLY:
            return self.group.group_id
        return b""

    @classmethod
    def split_group_prefix(cls, data: bytes) -> Tuple[Optional[GroupId], bytes]:
        """Split ``data`` (without type byte) into the group prefix and the body."""
        if cls.GROUP_SCOPE is GroupScope.CREATOR_AND_ID:
            n = IDENTITY_LEN + GROUP_ID_LEN
            if len(data) < n:
                raise BadMessage(f"bad length ({len(data) + 1}) for {cls.__name__}")
            try:
                creator = data[:IDENTITY_LEN].decode("ascii")
            except UnicodeDecodeError as e:
                raise BadMessage("group creator is not a valid identity") from e
            return GroupId(data[IDENTITY_LEN:n], creator), data[n:]
        if cls.GROUP_SCOPE is GroupScope.ID_ONLY:
            if len(data) < GROUP_ID_LEN:
                raise BadMessage(f"bad length ({len(data) + 1}) for {cls.__name__}")
            return GroupId(data[:GROUP_ID_LEN]), data[GROUP_ID_LEN:]
        return None, data

    @classmethod
    def from_bytes(cls, data: bytes) -> "ThreemaMessage":
        """Parse a full message (type byte included) of this variant."""
        if not data or data[0] != cls.TYPE_CODE:
            raise BadMessage(f"not a {cls.__name__}")
        group, body = cls.split_group_prefix(data[1:])
        if len(body) < cls.MIN_BODY_LEN:
            raise BadMessage(f"bad length ({len(data)}) for {cls.__name__}")
        return cls.parse_body(body, group)


def decode_text(body: bytes, what: str) -> str:
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise BadMessage(f"{what} is not valid UTF-8") from e


def decode_json(body: bytes, what: str):
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise BadMessage(f"{what} contains malformed JSON") from e
