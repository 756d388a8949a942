from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from ..constants import QUOTE_PATTERN
from .base import GroupScope, ThreemaMessage, decode_text
from .types import GroupId, MessageId


class _QuoteMixin:
    text: str

    def _quote(self):
        return QUOTE_PATTERN.match(self.text)

    @property
    def quoted_message_id(self) -> Optional[MessageId]:
        m = self._quote()
        return MessageId.from_hex(m.group(1)) if m else None

    @property
    def quote_text(self) -> str:
        """Text without the quote header; the full text when nothing is quoted."""
        m = self._quote()
        return m.group(2) if m else self.text


@dataclass
class TextMessage(_QuoteMixin, ThreemaMessage):
    TYPE_CODE = 0x01
    MIN_BODY_LEN = 1

    text: str

    def body(self) -> bytes:
        return self.text.encode("utf-8")

    @classmethod
    def parse_body(cls, body, group):
        return cls(decode_text(body, "text message"))


@dataclass
class GroupTextMessage(_QuoteMixin, ThreemaMessage):
    TYPE_CODE = 0x41
    GROUP_SCOPE = GroupScope.CREATOR_AND_ID
    MIN_BODY_LEN = 1

    group: GroupId
    text: str

    def body(self) -> bytes:
        return self.text.encode("utf-8")

    @classmethod
    def parse_body(cls, body, group):
        return cls(group, decode_text(body, "group text message"))
