from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..constants import BALLOT_ID_LEN, IDENTITY_LEN
from ..exceptions import BadMessage
from ..utils import compact_json
from .base import GroupScope, ThreemaMessage, decode_json
from .types import (
    BallotChoice, DisplayMode, GroupId, ResultsDisclosure, State, VoteChoice, VotingMode,
    enum_value, identity_bytes,
)


@dataclass
class BallotContent:
    description: str
    state: State
    voting_mode: VotingMode
    results_disclosure: ResultsDisclosure
    order: int
    choices: List[BallotChoice]
    display_mode: Optional[DisplayMode] = None
    participants: Optional[List[str]] = None

    def to_json(self) -> bytes:
        o: Dict[str, Any] = {
            "d": self.description,
            "s": int(self.state),
            "a": int(self.voting_mode),
            "t": int(self.results_disclosure),
            "o": self.order,
        }
        if self.display_mode is not None:
            o["u"] = int(self.display_mode)
        o["c"] = [c.to_dict() for c in self.choices]
        if self.participants is not None:
            o["p"] = list(self.participants)
        return compact_json(o)

    @classmethod
    def from_json(cls, body: bytes) -> "BallotContent":
        o = decode_json(body, "ballot create message")
        if not isinstance(o, dict):
            raise BadMessage("ballot JSON must be an object")
        try:
            return cls(
                description=str(o["d"]),
                state=enum_value(State, o["s"]),
                voting_mode=enum_value(VotingMode, o["a"]),
                results_disclosure=enum_value(ResultsDisclosure, o["t"]),
                order=int(o["o"]),
                choices=[BallotChoice.from_dict(c) for c in o["c"]],
                display_mode=enum_value(DisplayMode, o["u"]) if "u" in o else None,
                participants=list(o["p"]) if "p" in o else None,
            )
        except KeyError as e:
            raise BadMessage(f"ballot message is missing key {e.args[0]!r}") from e
        except (TypeError, ValueError) as e:
            raise BadMessage(f"malformed ballot message: {e}") from e


def _split_ballot_id(body: bytes, what: str):
    if len(body) < BALLOT_ID_LEN:
        raise BadMessage(f"bad length for {what}")
    return body[:BALLOT_ID_LEN], body[BALLOT_ID_LEN:]


@dataclass
class BallotCreateMessage(ThreemaMessage):
    TYPE_CODE = 0x15
    MIN_BODY_LEN = BALLOT_ID_LEN + 2

    ballot_id: bytes
    ballot: BallotContent

    def body(self) -> bytes:
        return self.ballot_id + self.ballot.to_json()

    @classmethod
    def parse_body(cls, body, group):
        ballot_id, rest = _split_ballot_id(body, "ballot create message")
        return cls(ballot_id, BallotContent.from_json(rest))


@dataclass
class GroupBallotCreateMessage(ThreemaMessage):
    TYPE_CODE = 0x52
    GROUP_SCOPE = GroupScope.CREATOR_AND_ID
    MIN_BODY_LEN = BALLOT_ID_LEN + 2

    group: GroupId
    ballot_id: bytes
    ballot: BallotContent

    def body(self) -> bytes:
        return self.ballot_id + self.ballot.to_json()

    @classmethod
    def parse_body(cls, body, group):
        ballot_id, rest = _split_ballot_id(body, "group ballot create message")
        return cls(group, ballot_id, BallotContent.from_json(rest))


@dataclass
class GroupBallotVoteMessage(ThreemaMessage):
    """
    Vote on a group ballot.

    After the group prefix the body carries the ballot creator's identity and the
    ballot id, followed by a JSON array of ``[choice_id, 0|1]`` pairs.
    """
    TYPE_CODE = 0x53
    GROUP_SCOPE = GroupScope.CREATOR_AND_ID
    MIN_BODY_LEN = IDENTITY_LEN + BALLOT_ID_LEN + 2

    group: GroupId
    ballot_creator: str
    ballot_id: bytes
    votes: List[VoteChoice] = field(default_factory=list)

    def body(self) -> bytes:
        return (
            identity_bytes(self.ballot_creator)
            + self.ballot_id
            + compact_json([v.to_list() for v in self.votes])
        )

    @classmethod
    def parse_body(cls, body, group):
        try:
            ballot_creator = body[:IDENTITY_LEN].decode("ascii")
        except UnicodeDecodeError as e:
            raise BadMessage("ballot creator is not a valid identity") from e
        ballot_id, rest = _split_ballot_id(body[IDENTITY_LEN:], "group ballot vote message")
        items = decode_json(rest, "group ballot vote message")
        if not isinstance(items, list):
            raise BadMessage("ballot votes must be a JSON array")
        return cls(group, ballot_creator, ballot_id, [VoteChoice.from_list(i) for i in items])
