"""
threema_msgapi.constants
------------------------
Protocol constants shared by the codec, the crypto layer and the gateway client.
The HMAC keys and fixed blob nonces are part of the wire contract and must not change.
"""

import re

__version__ = "1.0.0"

DEFAULT_API_URL = "https://msgapi.threema.ch/"
USER_AGENT = f"threema-msgapi-sdk-python/{__version__}"

# byte lengths
IDENTITY_LEN = 8
MESSAGE_ID_LEN = 8
GROUP_ID_LEN = 8
BALLOT_ID_LEN = 8
BLOB_ID_LEN = 16
BLOB_KEY_LEN = 32
KEY_LEN = 32
NONCE_LEN = 24

MAX_PADDING = 255

EMAIL_HMAC_KEY = bytes.fromhex("30a5500fed9701fa6defdb610841900febb8e430881f7ad816826264ec09bad7")
PHONE_HMAC_KEY = bytes.fromhex("85adf8226953f3d96cfd5d09bf29555eb955fcd8aa5ec4f9fcd869e258370723")

FILE_NONCE = bytes(NONCE_LEN - 1) + b"\x01"
THUMBNAIL_NONCE = bytes(NONCE_LEN - 1) + b"\x02"

DOWNLOAD_TIMEOUT = 20

QUOTE_PATTERN = re.compile(r"^> quote #([0-9a-f]{16})(?:\r?\n){2}(.+)$", re.DOTALL)

CAPABILITY_TEXT = "text"
CAPABILITY_IMAGE = "image"
CAPABILITY_AUDIO = "audio"
CAPABILITY_VIDEO = "video"
CAPABILITY_FILE = "file"
