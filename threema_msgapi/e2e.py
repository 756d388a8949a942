"""
threema_msgapi.e2e
------------------
High-level send and receive flows on top of the gateway connector.

Each send resolves the recipient key(s), validates its input, uploads any encrypted
blobs, builds the typed message, seals it and posts it. One-to-one sends return the
gateway message id; group sends fan out one envelope per member in a single bulk
request and return the gateway's per-recipient list.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union
import mimetypes, random, warnings

from .constants import BALLOT_ID_LEN, CAPABILITY_FILE, CAPABILITY_IMAGE, IDENTITY_LEN, KEY_LEN
from .crypto import (
    box_decrypt, box_encrypt, decrypt_file_data, decrypt_file_thumbnail_data,
    encrypt_file_data, encrypt_file_thumbnail_data,
)
from .envelope import decrypt_message, encrypt_message
from .exceptions import InvalidIdentity, InvalidInput, InvalidKey, MsgApiError, NotAllowed, UploadFailed
from .logger import get_logger
from .messages import (
    BallotChoice, BallotContent, BallotCreateMessage, DeliveryReceipt, DisplayMode, FileContent,
    FileMessage, GroupBallotCreateMessage, GroupBallotVoteMessage, GroupCreateMessage,
    GroupDeletePhotoMessage, GroupDeliveryReceipt, GroupFileMessage, GroupId, GroupLeaveMessage,
    GroupLocationMessage, GroupRenameMessage, GroupRequestSyncMessage, GroupSetPhotoMessage,
    GroupTextMessage, ImageMessage, LocationMessage, MessageId, ReceiptType, RenderingType,
    ResultsDisclosure, State, TextMessage, ThreemaMessage, VoteChoice, VotingMode,
)
from .results import EncryptResult, ReceiveMessageResult, UploadResult
from .transport.transport_http import GatewayConnector
from .utils import hex_to_bytes, random_nonce

log = get_logger("MsgApi.E2E")

PathLike = Union[str, Path]
MessageIdLike = Union[MessageId, bytes, str]

DEFAULT_MIME_TYPE = "application/octet-stream"
NO_PUSH = {"noPush": True}


def guess_mime_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type or DEFAULT_MIME_TYPE


def _coerce(enum_cls, value, what: str):
    try:
        return enum_cls(value)
    except ValueError as e:
        raise InvalidInput(f"invalid {what}: {value!r}") from e


def _message_id(value: MessageIdLike) -> MessageId:
    if isinstance(value, MessageId):
        return value
    if isinstance(value, str):
        return MessageId.from_hex(value)
    return MessageId(bytes(value))


def _unique(identities: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(identities))


class E2EHelper:
    def __init__(self, connector: GatewayConnector, private_key: bytes,
                 rng: Optional[random.Random] = None,
                 mime_detector: Optional[Callable[[Path], str]] = None):
        if private_key is None or len(private_key) != KEY_LEN:
            raise InvalidKey(f"private key must be {KEY_LEN} bytes")
        self.connector = connector
        self.private_key = private_key
        self.rng = rng
        self.mime_detector = mime_detector or guess_mime_type

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _public_key(self, identity: str) -> bytes:
        key = self.connector.lookup_key(identity)
        if key is None:
            raise InvalidIdentity(identity)
        return key

    def _public_keys(self, identities: Sequence[str]) -> Dict[str, bytes]:
        if not identities:
            raise InvalidInput("at least one recipient is required")
        return {identity: self._public_key(identity) for identity in identities}

    def _send(self, to: str, public_key: bytes, message: ThreemaMessage) -> str:
        res = encrypt_message(message, self.private_key, public_key, self.rng)
        message_id = self.connector.send_e2e_message(to, res.nonce, res.result)
        log.info(f"[E2E SEND] {type(message).__name__} → {to} id={message_id}")
        return message_id

    def _send_group(self, identities: Sequence[str], message: ThreemaMessage,
                    options: Optional[Dict[str, Any]] = None) -> List[Any]:
        recipients = _unique(identities)
        keys = self._public_keys(recipients)
        nonces, boxes = [], []
        for identity in recipients:
            res = encrypt_message(message, self.private_key, keys[identity], self.rng)
            nonces.append(res.nonce)
            boxes.append(res.result)
        result = self.connector.send_e2e_bulk_message(recipients, nonces, boxes, options)
        log.info(f"[E2E BULK] {type(message).__name__} → {len(recipients)} recipients")
        return result

    def _require_capability(self, identity: str, capability: str) -> None:
        caps = self.connector.lookup_capabilities(identity)
        if not caps.has(capability):
            raise NotAllowed(f"{identity} does not support {capability} messages")

    @staticmethod
    def _read_file(path: PathLike) -> bytes:
        path = Path(path)
        if not path.is_file():
            raise InvalidInput(f"invalid file: {path}")
        return path.read_bytes()

    def _upload(self, encrypted: EncryptResult, persist: bool, what: str) -> UploadResult:
        upload = self.connector.upload_file(encrypted, persist=persist)
        if not upload.is_success:
            raise UploadFailed(upload.response_code, what)
        return upload

    def _upload_file(self, file_path: PathLike, thumbnail_path: Optional[PathLike],
                     caption: Optional[str], rendering_type, correlation_id: Optional[str],
                     metadata: Optional[Dict[str, Any]], persist: bool) -> FileContent:
        rendering_type = _coerce(RenderingType, rendering_type, "rendering type")
        file_path = Path(file_path)
        data = self._read_file(file_path)

        encrypted = encrypt_file_data(data, rng=self.rng)
        upload = self._upload(encrypted, persist, "file")

        thumbnail_blob_id = thumbnail_mime_type = None
        if thumbnail_path is not None and Path(thumbnail_path).is_file():
            thumb = encrypt_file_thumbnail_data(Path(thumbnail_path).read_bytes(), encrypted.secret)
            thumbnail_blob_id = self._upload(thumb, persist, "thumbnail").blob_id
            thumbnail_mime_type = self.mime_detector(Path(thumbnail_path))

        return FileContent(
            blob_id=upload.blob_id,
            encryption_key=encrypted.secret,
            mime_type=self.mime_detector(file_path),
            size=len(data),
            thumbnail_blob_id=thumbnail_blob_id,
            thumbnail_media_type=thumbnail_mime_type,
            file_name=file_path.name,
            caption=caption,
            rendering_type=rendering_type,
            correlation_id=correlation_id,
            metadata=metadata,
        )

    @staticmethod
    def _ballot(ballot_id: bytes, description: str, state, voting_mode, results_disclosure,
                order: int, choices: Sequence[BallotChoice], display_mode,
                participants: Optional[Sequence[str]]) -> BallotContent:
        if ballot_id is None or len(ballot_id) != BALLOT_ID_LEN:
            raise InvalidInput(f"ballot id must be {BALLOT_ID_LEN} bytes")
        if not choices:
            raise InvalidInput("please provide at least one choice")
        return BallotContent(
            description=description,
            state=_coerce(State, state, "state"),
            voting_mode=_coerce(VotingMode, voting_mode, "voting mode"),
            results_disclosure=_coerce(ResultsDisclosure, results_disclosure, "results disclosure"),
            order=order,
            choices=list(choices),
            display_mode=_coerce(DisplayMode, display_mode, "display mode") if display_mode is not None else None,
            participants=list(participants) if participants is not None else None,
        )

    @staticmethod
    def _check_group(group: GroupId, needs_creator: bool = True) -> None:
        if group is None:
            raise InvalidInput("invalid group id")
        if needs_creator and group.creator is None:
            raise InvalidInput("group creator is required")

    @staticmethod
    def _check_location(latitude, longitude, accuracy):
        try:
            lat, lng = float(latitude), float(longitude)
            acc = float(accuracy) if accuracy is not None else None
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"invalid coordinates: {latitude!r}, {longitude!r}") from e
        if not -90.0 <= lat <= 90.0:
            raise InvalidInput(f"latitude out of range: {lat}")
        if not -180.0 <= lng <= 180.0:
            raise InvalidInput(f"longitude out of range: {lng}")
        return lat, lng, acc

    # ------------------------------------------------------------------
    # One-to-one sends
    # ------------------------------------------------------------------
    def send_text_message(self, to: str, text: str) -> str:
        public_key = self._public_key(to)
        if not text:
            raise InvalidInput("no text provided")
        return self._send(to, public_key, TextMessage(text))

    def send_location_message(self, to: str, latitude: float, longitude: float,
                              accuracy: Optional[float] = None, poi_name: Optional[str] = None,
                              address: Optional[str] = None) -> str:
        public_key = self._public_key(to)
        lat, lng, acc = self._check_location(latitude, longitude, accuracy)
        message = LocationMessage(lat, lng, acc, poi_name, address)
        return self._send(to, public_key, message)

    def send_image_message(self, to: str, image_path: PathLike) -> str:
        """Send a legacy image message. Prefer :meth:`send_file_message`."""
        warnings.warn(
            "image messages are deprecated, use send_file_message instead",
            DeprecationWarning, stacklevel=2,
        )
        public_key = self._public_key(to)
        data = self._read_file(image_path)
        self._require_capability(to, CAPABILITY_IMAGE)

        nonce = random_nonce(self.rng)
        encrypted = EncryptResult(result=box_encrypt(data, nonce, self.private_key, public_key), nonce=nonce)
        upload = self._upload(encrypted, False, "image")
        return self._send(to, public_key, ImageMessage(upload.blob_id, encrypted.size, nonce))

    def send_file_message(self, to: str, file_path: PathLike, thumbnail_path: Optional[PathLike] = None,
                          caption: Optional[str] = None, rendering_type=RenderingType.FILE,
                          correlation_id: Optional[str] = None,
                          metadata: Optional[Dict[str, Any]] = None) -> str:
        public_key = self._public_key(to)
        _coerce(RenderingType, rendering_type, "rendering type")
        if not Path(file_path).is_file():
            raise InvalidInput(f"invalid file: {file_path}")
        self._require_capability(to, CAPABILITY_FILE)

        content = self._upload_file(file_path, thumbnail_path, caption, rendering_type,
                                    correlation_id, metadata, persist=False)
        return self._send(to, public_key, FileMessage(content))

    def send_ballot_create_message(self, to: str, ballot_id: bytes, description: str,
                                   state, voting_mode, results_disclosure, order: int,
                                   choices: Sequence[BallotChoice], display_mode=None,
                                   participants: Optional[Sequence[str]] = None) -> str:
        public_key = self._public_key(to)
        ballot = self._ballot(ballot_id, description, state, voting_mode, results_disclosure,
                              order, choices, display_mode, participants)
        return self._send(to, public_key, BallotCreateMessage(ballot_id, ballot))

    def send_delivery_receipt(self, to: str, receipt_type, message_ids: Sequence[MessageIdLike]) -> str:
        if not message_ids:
            raise InvalidInput("no acknowledged message ids provided")
        public_key = self._public_key(to)
        receipt = DeliveryReceipt(
            _coerce(ReceiptType, receipt_type, "receipt type"),
            [_message_id(m) for m in message_ids],
        )
        return self._send(to, public_key, receipt)

    # ------------------------------------------------------------------
    # Group sends
    # ------------------------------------------------------------------
    def send_group_text_message(self, to: Sequence[str], group: GroupId, text: str) -> List[Any]:
        self._check_group(group)
        if not text:
            raise InvalidInput("invalid text")
        return self._send_group(to, GroupTextMessage(group, text))

    def send_group_location_message(self, to: Sequence[str], group: GroupId,
                                    latitude: float, longitude: float,
                                    accuracy: Optional[float] = None, poi_name: Optional[str] = None,
                                    address: Optional[str] = None) -> List[Any]:
        self._check_group(group)
        lat, lng, acc = self._check_location(latitude, longitude, accuracy)
        message = GroupLocationMessage(group, lat, lng, acc, poi_name, address)
        return self._send_group(to, message)

    def send_group_file_message(self, to: Sequence[str], group: GroupId, file_path: PathLike,
                                thumbnail_path: Optional[PathLike] = None,
                                caption: Optional[str] = None, rendering_type=RenderingType.FILE,
                                correlation_id: Optional[str] = None,
                                metadata: Optional[Dict[str, Any]] = None) -> List[Any]:
        self._check_group(group)
        recipients = _unique(to)
        self._public_keys(recipients)
        content = self._upload_file(file_path, thumbnail_path, caption, rendering_type,
                                    correlation_id, metadata, persist=True)
        return self._send_group(recipients, GroupFileMessage(group, content))

    def send_group_ballot_create_message(self, to: Sequence[str], group: GroupId, ballot_id: bytes,
                                         description: str, state, voting_mode, results_disclosure,
                                         order: int, choices: Sequence[BallotChoice],
                                         display_mode=None,
                                         participants: Optional[Sequence[str]] = None) -> List[Any]:
        self._check_group(group)
        ballot = self._ballot(ballot_id, description, state, voting_mode, results_disclosure,
                              order, choices, display_mode, participants)
        return self._send_group(to, GroupBallotCreateMessage(group, ballot_id, ballot))

    def send_group_ballot_vote_message(self, to: Sequence[str], group: GroupId, ballot_creator: str,
                                       ballot_id: bytes, votes: Sequence[VoteChoice]) -> List[Any]:
        self._check_group(group)
        if ballot_creator is None or len(ballot_creator) != IDENTITY_LEN:
            raise InvalidInput("invalid ballot creator")
        if ballot_id is None or len(ballot_id) != BALLOT_ID_LEN:
            raise InvalidInput(f"ballot id must be {BALLOT_ID_LEN} bytes")
        if not votes:
            raise InvalidInput("please make at least one vote")
        message = GroupBallotVoteMessage(group, ballot_creator, ballot_id, list(votes))
        return self._send_group(to, message)

    def send_group_delivery_receipt(self, to: Sequence[str], group: GroupId, receipt_type,
                                    message_ids: Sequence[MessageIdLike]) -> List[Any]:
        self._check_group(group)
        if not message_ids:
            raise InvalidInput("no acknowledged message ids provided")
        receipt = GroupDeliveryReceipt(
            group,
            _coerce(ReceiptType, receipt_type, "receipt type"),
            [_message_id(m) for m in message_ids],
        )
        return self._send_group(to, receipt)

    def send_group_create_message(self, to: Sequence[str], group: GroupId,
                                  members: Sequence[str]) -> List[Any]:
        self._check_group(group, needs_creator=False)
        message = GroupCreateMessage(group, _unique(members))
        return self._send_group(to, message, NO_PUSH)

    def send_group_rename_message(self, to: Sequence[str], group: GroupId, name: str) -> List[Any]:
        self._check_group(group, needs_creator=False)
        if not name:
            raise InvalidInput("invalid new group name")
        return self._send_group(to, GroupRenameMessage(group, name), NO_PUSH)

    def send_group_leave_message(self, to: Sequence[str], group: GroupId) -> List[Any]:
        self._check_group(group)
        return self._send_group(to, GroupLeaveMessage(group))

    def send_group_set_photo_message(self, to: Sequence[str], group: GroupId,
                                     photo_path: PathLike) -> List[Any]:
        self._check_group(group, needs_creator=False)
        recipients = _unique(to)
        self._public_keys(recipients)
        data = self._read_file(photo_path)

        encrypted = encrypt_file_data(data, rng=self.rng)
        upload = self._upload(encrypted, True, "group photo")
        message = GroupSetPhotoMessage(group, upload.blob_id, len(data), encrypted.secret)
        return self._send_group(recipients, message, NO_PUSH)

    def send_group_delete_photo_message(self, to: Sequence[str], group: GroupId) -> List[Any]:
        self._check_group(group, needs_creator=False)
        return self._send_group(to, GroupDeletePhotoMessage(group), NO_PUSH)

    def send_group_request_sync_message(self, to: Sequence[str], group: GroupId) -> List[Any]:
        self._check_group(group, needs_creator=False)
        return self._send_group(to, GroupRequestSyncMessage(group))

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------
    def receive_message(self, identity: str, message_id: str, box: Union[bytes, str],
                        nonce: Union[bytes, str], output_dir: PathLike) -> ReceiveMessageResult:
        """
        Decrypt an incoming envelope and fetch the blobs it references.

        Decrypted blobs are written to ``output_dir``. A failing thumbnail is recorded
        in ``errors``; every other failure propagates.
        """
        if isinstance(box, str):
            box = hex_to_bytes(box)
        if isinstance(nonce, str):
            nonce = hex_to_bytes(nonce)
        public_key = self._public_key(identity)
        message = decrypt_message(box, self.private_key, public_key, nonce)
        result = ReceiveMessageResult(message_id=message_id, message=message)
        log.info(f"[E2E RECV] {type(message).__name__} from {identity} id={message_id}")

        handler = self._blob_handlers.get(type(message))
        if handler is not None:
            out = Path(output_dir)
            out.mkdir(parents=True, exist_ok=True)
            handler(self, message, public_key, out, result)
        return result

    def _receive_image(self, message: ImageMessage, public_key: bytes, out: Path,
                       result: ReceiveMessageResult) -> None:
        data = self.connector.download_file(message.blob_id)
        path = out / f"{result.message_id}.jpg"
        path.write_bytes(box_decrypt(data, message.nonce, self.private_key, public_key))
        result.files.append(path)

    def _receive_file(self, message, public_key: bytes, out: Path,
                      result: ReceiveMessageResult) -> None:
        content: FileContent = message.file
        data = self.connector.download_file(content.blob_id)
        name = Path(content.file_name).name if content.file_name else ""
        path = out / f"{result.message_id}-{name or 'unnamed'}"
        path.write_bytes(decrypt_file_data(data, content.encryption_key))
        result.files.append(path)

        if content.thumbnail_blob_id:
            try:
                thumb = self.connector.download_file(content.thumbnail_blob_id)
                thumb_path = out / f"{result.message_id}-thumbnail.jpg"
                thumb_path.write_bytes(decrypt_file_thumbnail_data(thumb, content.encryption_key))
                result.files.append(thumb_path)
            except (MsgApiError, OSError) as e:
                log.warning(f"[E2E RECV] thumbnail for {result.message_id} failed: {e}")
                result.errors.append(f"thumbnail: {e}")

    _blob_handlers = {
        ImageMessage: _receive_image,
        FileMessage: _receive_file,
        GroupFileMessage: _receive_file,
    }
