"""
threema_msgapi.exceptions
-------------------------
Error taxonomy for key handling, input validation and incoming message parsing.
HTTP and network errors live in threema_msgapi.transport.transport_base.
"""


class MsgApiError(Exception):
    pass


class InvalidKey(MsgApiError):
    """Key has the wrong length, a malformed encoding, or is missing."""


class InvalidIdentity(InvalidKey):
    """No public key could be resolved for a recipient or sender identity."""

    def __init__(self, identity: str):
        super().__init__(f"no public key found for identity {identity}")
        self.identity = identity


class InvalidInput(MsgApiError, ValueError):
    pass


class InvalidHex(MsgApiError, ValueError):
    pass


class NotAllowed(MsgApiError):
    pass


class UploadFailed(MsgApiError):
    def __init__(self, status_code: int, what: str = "file"):
        super().__init__(f"{what} upload failed with status {status_code}")
        self.status_code = status_code


class MessageParseError(MsgApiError):
    pass


class BadMessage(MessageParseError):
    pass


class UnsupportedMessageType(MessageParseError):
    def __init__(self, type_code: int):
        super().__init__(f"unsupported message type 0x{type_code:02x}")
        self.type_code = type_code


class DecryptionFailed(MessageParseError):
    pass
