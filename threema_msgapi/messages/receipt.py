from __future__ import annotations
from dataclasses import dataclass
from typing import List

from ..constants import MESSAGE_ID_LEN
from ..exceptions import BadMessage
from .base import GroupScope, ThreemaMessage
from .types import GroupId, MessageId, ReceiptType, enum_value


def _receipt_body(receipt_type: ReceiptType, ids: List[MessageId]) -> bytes:
    return bytes([int(receipt_type)]) + b"".join(m.id for m in ids)


def _parse_receipt(body: bytes):
    if len(body) < 1 + MESSAGE_ID_LEN or (len(body) - 1) % MESSAGE_ID_LEN != 0:
        raise BadMessage(f"bad length ({len(body) + 1}) for delivery receipt")
    receipt_type = enum_value(ReceiptType, body[0])
    ids = [
        MessageId(body[i:i + MESSAGE_ID_LEN])
        for i in range(1, len(body), MESSAGE_ID_LEN)
    ]
    return receipt_type, ids


@dataclass
class DeliveryReceipt(ThreemaMessage):
    TYPE_CODE = 0x80

    receipt_type: ReceiptType
    acked_message_ids: List[MessageId]

    def body(self) -> bytes:
        return _receipt_body(self.receipt_type, self.acked_message_ids)

    @classmethod
    def parse_body(cls, body, group):
        return cls(*_parse_receipt(body))


@dataclass
class GroupDeliveryReceipt(ThreemaMessage):
    TYPE_CODE = 0x81
    GROUP_SCOPE = GroupScope.CREATOR_AND_ID

    group: GroupId
    receipt_type: ReceiptType
    acked_message_ids: List[MessageId]

    def body(self) -> bytes:
        return _receipt_body(self.receipt_type, self.acked_message_ids)

    @classmethod
    def parse_body(cls, body, group):
        return cls(group, *_parse_receipt(body))
