"""
threema_msgapi
==============
Client SDK for the Threema gateway (MsgApi).

Provides:
- Typed end-to-end message variants and their wire codec
- NaCl envelope sealing, blob encryption and identity hashing
- A public-key cache with pluggable storage (memory, SQLite)
- The HTTPS gateway connector and the E2EHelper send/receive flows
"""

from .constants import __version__
from .crypto import derive_public_key, generate_keypair, hash_email, hash_phone_no
from .e2e import E2EHelper
from .envelope import decrypt_message, encrypt_message
from .exceptions import (
    BadMessage, DecryptionFailed, InvalidHex, InvalidIdentity, InvalidInput, InvalidKey,
    MessageParseError, MsgApiError, NotAllowed, UnsupportedMessageType, UploadFailed,
)
from .keys import Key, KeyType, read_key_file, write_key_file
from .storage import PublicKeyStore
from .transport import ApiError, ClientError, GatewayConnector, ServerError, TransportError, connector_factory
