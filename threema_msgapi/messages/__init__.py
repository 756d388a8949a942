"""
threema_msgapi.messages
-----------------------
The closed family of end-to-end message variants and the type-code registry used to
parse decrypted envelopes.
"""

from typing import Dict, Type

from ..exceptions import BadMessage, UnsupportedMessageType
from .base import GroupScope, ThreemaMessage
from .ballot import BallotContent, BallotCreateMessage, GroupBallotCreateMessage, GroupBallotVoteMessage
from .file import FileContent, FileMessage, GroupFileMessage, ImageMessage
from .group import (
    GroupCreateMessage, GroupDeletePhotoMessage, GroupLeaveMessage, GroupRenameMessage,
    GroupRequestSyncMessage, GroupSetPhotoMessage,
)
from .location import GroupLocationMessage, LocationMessage
from .receipt import DeliveryReceipt, GroupDeliveryReceipt
from .text import GroupTextMessage, TextMessage
from .types import (
    BallotChoice, DisplayMode, GroupId, MessageId, ReceiptType, RenderingType,
    ResultsDisclosure, State, VoteChoice, VotingMode,
)

MESSAGE_TYPES: Dict[int, Type[ThreemaMessage]] = {
    cls.TYPE_CODE: cls
    for cls in (
        TextMessage,
        ImageMessage,
        LocationMessage,
        BallotCreateMessage,
        FileMessage,
        DeliveryReceipt,
        GroupTextMessage,
        GroupLocationMessage,
        GroupFileMessage,
        GroupCreateMessage,
        GroupRenameMessage,
        GroupLeaveMessage,
        GroupSetPhotoMessage,
        GroupRequestSyncMessage,
        GroupBallotCreateMessage,
        GroupBallotVoteMessage,
        GroupDeletePhotoMessage,
        GroupDeliveryReceipt,
    )
}


def parse_message(data: bytes) -> ThreemaMessage:
    """Parse an unpadded message (type byte first) into its variant."""
    if not data:
        raise BadMessage("empty message")
    cls = MESSAGE_TYPES.get(data[0])
    if cls is None:
        raise UnsupportedMessageType(data[0])
    return cls.from_bytes(data)


__all__ = [
    "MESSAGE_TYPES",
    "parse_message",
    "GroupScope",
    "ThreemaMessage",
    "BallotContent",
    "BallotCreateMessage",
    "GroupBallotCreateMessage",
    "GroupBallotVoteMessage",
    "FileContent",
    "FileMessage",
    "GroupFileMessage",
    "ImageMessage",
    "GroupCreateMessage",
    "GroupDeletePhotoMessage",
    "GroupLeaveMessage",
    "GroupRenameMessage",
    "GroupRequestSyncMessage",
    "GroupSetPhotoMessage",
    "GroupLocationMessage",
    "LocationMessage",
    "DeliveryReceipt",
    "GroupDeliveryReceipt",
    "GroupTextMessage",
    "TextMessage",
    "BallotChoice",
    "DisplayMode",
    "GroupId",
    "MessageId",
    "ReceiptType",
    "RenderingType",
    "ResultsDisclosure",
    "State",
    "VoteChoice",
    "VotingMode",
]
