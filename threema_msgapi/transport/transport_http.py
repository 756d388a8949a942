# threema_msgapi/transport/transport_http.py
from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence
import random, threading

import requests

from threema_msgapi.capabilities import CapabilityResult
from threema_msgapi.constants import BLOB_ID_LEN, DEFAULT_API_URL, DOWNLOAD_TIMEOUT, USER_AGENT
from threema_msgapi.crypto import hash_email, hash_phone_no
from threema_msgapi.exceptions import InvalidHex, InvalidInput
from threema_msgapi.logger import get_logger
from threema_msgapi.results import EncryptResult, UploadResult
from threema_msgapi.storage.key_store import PublicKeyStore
from threema_msgapi.transport.transport_base import TransportError, error_for_status
from threema_msgapi.utils import b64e, bytes_to_hex, hex_to_bytes, random_boundary

log = get_logger("MsgApi.Transport.HTTP")

DEFAULT_HEADERS = {
    "Accept": "text/html, image/gif, image/jpeg, *; q=.2, */*; q=.2",
    "Charset": "utf-8",
    "Cache-control": "no-cache",
    "Pragma": "no-cache",
}


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_blob_id(text: str) -> Optional[bytes]:
    try:
        blob_id = hex_to_bytes(text)
    except InvalidHex:
        return None
    return blob_id if len(blob_id) == BLOB_ID_LEN else None


class GatewayConnector:
    """
    HTTPS client for the gateway API.

    Features:
    - Authenticates every call with the gateway identity and its API secret.
    - Resolves public keys through a PublicKeyStore, falling back to ``pubkeys/{id}``.
    - Uploads and downloads encrypted blobs.

    Without an injected ``session`` each thread gets its own ``requests.Session``.
    """

    def __init__(self, identity: str, secret: str,
                 public_key_store: Optional[PublicKeyStore] = None,
                 api_url: Optional[str] = None,
                 user_agent: Optional[str] = None,
                 session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None,
                 rng: Optional[random.Random] = None):
        self.identity = identity
        self.secret = secret
        self.public_key_store = public_key_store or PublicKeyStore()
        url = api_url or DEFAULT_API_URL
        self.api_url = url if url.endswith("/") else url + "/"
        self.headers = dict(DEFAULT_HEADERS, **{"User-Agent": user_agent or USER_AGENT})
        self.timeout = timeout
        self._rng = rng
        self._shared_session = session
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------
    def _session(self):
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
        return session

    def _auth(self) -> Dict[str, str]:
        return {"from": self.identity, "secret": self.secret}

    def _call(self, operation: str, method: str, path: str, *,
              params: Optional[Dict[str, str]] = None,
              data: Any = None,
              json: Any = None,
              headers: Optional[Dict[str, str]] = None,
              timeout: Optional[float] = None):
        url = self.api_url + path
        all_headers = dict(self.headers, **(headers or {}))
        log.debug(f"[HTTP {operation}] → {method} {url}")
        try:
            res = self._session().request(
                method, url,
                params=params, data=data, json=json,
                headers=all_headers,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except requests.RequestException as e:
            log.error(f"[HTTP {operation}] transport failure: {e}")
            raise TransportError(f"{operation} call failed: {e}") from e
        log.info(f"[HTTP {operation}] {res.status_code}")
        return res

    def _raise_for_status(self, operation: str, res) -> None:
        if 200 <= res.status_code <= 299:
            return
        log.error(f"[HTTP {operation}] {res.status_code}: {res.text}")
        raise error_for_status(operation, res.status_code, res.headers, res.text)

    def _get(self, operation: str, path: str, not_found_ok: bool = False, timeout: Optional[float] = None):
        res = self._call(operation, "GET", path, params=self._auth(), timeout=timeout)
        if not_found_ok and res.status_code == 404:
            return None
        self._raise_for_status(operation, res)
        return res

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------
    def send_text_message_simple(self, to: str, text: str) -> str:
        """Send a server-encrypted text message; returns the message id."""
        form = dict(self._auth(), to=to, text=text)
        res = self._call("send_simple", "POST", "send_simple", data=form)
        self._raise_for_status("send_simple", res)
        return res.text.strip()

    def send_e2e_message(self, to: str, nonce: bytes, box: bytes,
                         options: Optional[Dict[str, Any]] = None) -> str:
        """Post one end-to-end envelope; returns the message id."""
        form = dict(self._auth(), to=to, nonce=bytes_to_hex(nonce), box=bytes_to_hex(box))
        for key, value in (options or {}).items():
            form[key] = _form_value(value)
        res = self._call("send_e2e", "POST", "send_e2e", data=form)
        self._raise_for_status("send_e2e", res)
        return res.text.strip()

    def send_e2e_bulk_message(self, to: Sequence[str], nonces: Sequence[bytes], boxes: Sequence[bytes],
                              options: Optional[Dict[str, Any]] = None) -> List[Any]:
        """
        Post one envelope per recipient in a single request.

        The gateway answers with one entry per recipient, in request order; the list
        is returned as received.
        """
        if not (len(to) == len(nonces) == len(boxes)):
            raise InvalidInput("recipients, nonces and boxes must have the same length")
        payload = []
        for identity, nonce, box in zip(to, nonces, boxes):
            entry: Dict[str, Any] = {
                "to": identity,
                "nonce": b64e(nonce),
                "box": b64e(box),
                "group": True,
            }
            entry.update(options or {})
            payload.append(entry)
        res = self._call(
            "send_e2e_bulk", "POST", "send_e2e_bulk",
            params=self._auth(), json=payload,
            headers={"Content-Type": "application/json"},
        )
        self._raise_for_status("send_e2e_bulk", res)
        return res.json()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def lookup_phone(self, phone_no: str) -> Optional[str]:
        res = self._get("lookup_phone", f"lookup/phone_hash/{bytes_to_hex(hash_phone_no(phone_no))}", not_found_ok=True)
        return res.text.strip() if res is not None else None

    def lookup_email(self, email: str) -> Optional[str]:
        res = self._get("lookup_email", f"lookup/email_hash/{bytes_to_hex(hash_email(email))}", not_found_ok=True)
        return res.text.strip() if res is not None else None

    def fetch_public_key(self, identity: str) -> Optional[bytes]:
        """Ask the gateway for the public key of ``identity``; ``None`` if it is unknown."""
        res = self._get("pubkeys", f"pubkeys/{identity}", not_found_ok=True)
        if res is None:
            return None
        return hex_to_bytes(res.text)

    def lookup_key(self, identity: str) -> Optional[bytes]:
        return self.public_key_store.get_public_key(identity, fallback=self.fetch_public_key)

    def lookup_capabilities(self, identity: str) -> CapabilityResult:
        res = self._get("capabilities", f"capabilities/{identity}")
        return CapabilityResult.from_response(identity, res.text)

    def lookup_credits(self) -> int:
        res = self._get("credits", "credits")
        return int(res.text.strip())

    # ------------------------------------------------------------------
    # Blobs
    # ------------------------------------------------------------------
    def upload_file(self, encrypt_result: EncryptResult, persist: bool = False) -> UploadResult:
        """
        Upload an encrypted blob as ``multipart/form-data``.

        HTTP failures and a missing or malformed blob id come back as an unsuccessful
        ``UploadResult``; only transport failures raise.
        """
        boundary = random_boundary(self._rng)
        body = (
            f"--{boundary}\r\n"
            'Content-Disposition: form-data; name="blob"; filename="blob.file"\r\n'
            "\r\n"
        ).encode("ascii") + encrypt_result.result + f"\r\n--{boundary}--\r\n".encode("ascii")

        params = self._auth()
        if persist:
            params["persist"] = "true"
        res = self._call(
            "upload_blob", "POST", "upload_blob",
            params=params, data=body,
            headers={"Content-Type": f"multipart/form-data;boundary={boundary}"},
        )
        if 200 <= res.status_code <= 299:
            blob_id = _parse_blob_id(res.text)
            if blob_id is None:
                log.warning(f"[HTTP upload_blob] {res.status_code} with unusable blob id: {res.text!r}")
                return UploadResult(res.status_code)
            log.info(f"[HTTP upload_blob] stored {encrypt_result.size} bytes as {bytes_to_hex(blob_id)}")
            return UploadResult(res.status_code, blob_id)
        log.warning(f"[HTTP upload_blob] {res.status_code}: {res.text}")
        return UploadResult(res.status_code)

    def download_file(self, blob_id: bytes) -> bytes:
        timeout = self.timeout if self.timeout is not None else DOWNLOAD_TIMEOUT
        res = self._get("blobs", f"blobs/{bytes_to_hex(blob_id)}", timeout=timeout)
        return res.content
