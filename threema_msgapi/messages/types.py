from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional

from ..constants import GROUP_ID_LEN, IDENTITY_LEN, MESSAGE_ID_LEN
from ..exceptions import BadMessage, InvalidInput
from ..utils import bytes_to_hex, hex_to_bytes, unpack_uint64_be


class ReceiptType(IntEnum):
    RECEIVED = 1
    READ = 2
    USER_ACK = 3
    USER_DEC = 4


class RenderingType(IntEnum):
    FILE = 0
    MEDIA = 1
    STICKER = 2


class State(IntEnum):
    OPEN = 0
    CLOSED = 1


class VotingMode(IntEnum):
    SINGLE = 0
    MULTI = 1


class ResultsDisclosure(IntEnum):
    CLOSED = 0
    INTERMEDIATE = 1


class DisplayMode(IntEnum):
    LIST = 0
    SUMMARY = 1


def enum_value(enum_cls, value: Any):
    """Map a wire integer to ``enum_cls``; unknown values are a malformed message."""
    try:
        return enum_cls(value)
    except ValueError as e:
        raise BadMessage(f"invalid {enum_cls.__name__} value {value!r}") from e


def identity_bytes(identity: str) -> bytes:
    raw = identity.encode("ascii") if isinstance(identity, str) else bytes(identity)
    if len(raw) != IDENTITY_LEN:
        raise InvalidInput(f"identity must be {IDENTITY_LEN} characters: {identity!r}")
    return raw


@dataclass(frozen=True)
class MessageId:
    id: bytes

    def __post_init__(self):
        if len(self.id) != MESSAGE_ID_LEN:
            raise InvalidInput(f"message id must be {MESSAGE_ID_LEN} bytes")

    @classmethod
    def from_hex(cls, s: str) -> "MessageId":
        return cls(hex_to_bytes(s))

    def __str__(self) -> str:
        return bytes_to_hex(self.id)


@dataclass(frozen=True)
class GroupId:
    """
    Group identifier chosen by the group creator.

    ``creator`` is the creator's identity and may be omitted for the control messages
    whose wire layout carries only the 8-byte group id (create, rename, set/delete photo,
    request sync).
    """
    group_id: bytes
    creator: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.group_id, str):
            object.__setattr__(self, "group_id", self.group_id.encode("ascii"))
        if len(self.group_id) != GROUP_ID_LEN:
            raise InvalidInput(f"group id must be {GROUP_ID_LEN} bytes")
        if self.creator is not None:
            identity_bytes(self.creator)

    @property
    def creator_bytes(self) -> bytes:
        if self.creator is None:
            raise InvalidInput("group creator is required for this message type")
        return identity_bytes(self.creator)

    def to_long(self) -> int:
        # Only the leading 8 bytes (the creator) fit into 64 bits.
        return unpack_uint64_be(self.creator_bytes + self.group_id)


@dataclass
class BallotChoice:
    identifier: int
    name: str
    order: int
    result: List[int] = field(default_factory=list)
    total_votes: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"i": self.identifier, "n": self.name, "o": self.order, "r": list(self.result)}
        if self.total_votes is not None:
            d["t"] = self.total_votes
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BallotChoice":
        try:
            return cls(
                identifier=int(data["i"]),
                name=str(data["n"]),
                order=int(data["o"]),
                result=[int(r) for r in data.get("r") or []],
                total_votes=data.get("t"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise BadMessage(f"malformed ballot choice: {e}") from e


@dataclass
class VoteChoice:
    choice_id: int
    selected: bool

    def to_list(self) -> List[int]:
        return [self.choice_id, 1 if self.selected else 0]

    @classmethod
    def from_list(cls, item: Any) -> "VoteChoice":
        try:
            choice_id, flag = item
            return cls(int(choice_id), int(flag) == 1)
        except (TypeError, ValueError) as e:
            raise BadMessage(f"malformed vote choice: {item!r}") from e
