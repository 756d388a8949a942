import pytest
from conftest import FakeResponse

from threema_msgapi.crypto import (
    box_encrypt, decrypt_file_data, encrypt_file_data, encrypt_file_thumbnail_data, generate_keypair,
)
from threema_msgapi.e2e import E2EHelper
from threema_msgapi.envelope import decrypt_message, encrypt_message
from threema_msgapi.exceptions import InvalidIdentity, InvalidInput, InvalidKey, NotAllowed, UploadFailed
from threema_msgapi.messages import (
    BallotChoice, FileContent, FileMessage, GroupBallotCreateMessage, GroupBallotVoteMessage,
    GroupCreateMessage, GroupDeletePhotoMessage, GroupDeliveryReceipt, GroupFileMessage, GroupId,
    GroupLeaveMessage, GroupLocationMessage, GroupRenameMessage, GroupRequestSyncMessage,
    GroupSetPhotoMessage, LocationMessage, MessageId, VoteChoice,
    GroupTextMessage, ImageMessage, ReceiptType, RenderingType, State, TextMessage, VotingMode,
    ResultsDisclosure, DeliveryReceipt,
)
from threema_msgapi.utils import b64d

GROUP = GroupId(b"GGGGGGG2", "*AAAAAA1")


@pytest.fixture
def helper(connector, sender_keys):
    return E2EHelper(connector, sender_keys[0])


def _route_key(session, identity, public_key):
    session.route("GET", f"pubkeys/{identity}", body=public_key.hex())


def _open(session_call, recipient_priv, sender_pub):
    form = session_call["data"]
    return decrypt_message(bytes.fromhex(form["box"]), recipient_priv, sender_pub, bytes.fromhex(form["nonce"]))


def test_send_text_message(helper, session, sender_keys, recipient_keys):
    r_priv, r_pub = recipient_keys
    _route_key(session, "ABCDEFGH", r_pub)
    session.route("POST", "send_e2e", body="0123456789abcdef")

    assert helper.send_text_message("ABCDEFGH", "hello") == "0123456789abcdef"
    assert helper.send_text_message("ABCDEFGH", "again") == "0123456789abcdef"
    assert len(session.calls_to("pubkeys/ABCDEFGH")) == 1

    msg = _open(session.calls_to("send_e2e")[0], r_priv, sender_keys[1])
    assert msg == TextMessage("hello")


def test_unknown_recipient(helper):
    with pytest.raises(InvalidIdentity):
        helper.send_text_message("UNKNOWN1", "hello")


def test_missing_key_is_invalid_key(helper):
    with pytest.raises(InvalidKey):
        helper.send_text_message("UNKNOWN1", "hello")


def test_empty_text_rejected(helper, session, recipient_keys):
    _route_key(session, "ABCDEFGH", recipient_keys[1])
    with pytest.raises(InvalidInput):
        helper.send_text_message("ABCDEFGH", "")


def test_bad_private_key(connector):
    with pytest.raises(InvalidKey):
        E2EHelper(connector, b"short")


def test_send_file_message(helper, session, sender_keys, recipient_keys, tmp_path):
    r_priv, r_pub = recipient_keys
    _route_key(session, "ABCDEFGH", r_pub)
    session.route("GET", "capabilities/ABCDEFGH", body="text,file")
    blob_ids = iter(["aa" * 16, "bb" * 16])
    uploads = []

    def upload(call):
        uploads.append(call)
        return FakeResponse(200, next(blob_ids))

    session.route_handler("POST", "upload_blob", upload)
    session.route("POST", "send_e2e", body="feedfacefeedface")

    doc = tmp_path / "report.pdf"
    doc.write_bytes(b"%PDF-1.4 data")
    thumb = tmp_path / "thumb.jpg"
    thumb.write_bytes(b"\xff\xd8thumb")

    mid = helper.send_file_message("ABCDEFGH", doc, thumb, caption="Q3", rendering_type=RenderingType.MEDIA)
    assert mid == "feedfacefeedface"
    assert len(uploads) == 2
    assert all("persist" not in u["params"] for u in uploads)

    msg = _open(session.calls_to("send_e2e")[0], r_priv, sender_keys[1])
    assert isinstance(msg, FileMessage)
    content = msg.file
    assert content.blob_id == b"\xaa" * 16
    assert content.thumbnail_blob_id == b"\xbb" * 16
    assert content.mime_type == "application/pdf"
    assert content.thumbnail_media_type == "image/jpeg"
    assert content.file_name == "report.pdf"
    assert content.size == len(b"%PDF-1.4 data")
    assert content.caption == "Q3"
    assert content.rendering_type is RenderingType.MEDIA


def test_send_file_requires_capability(helper, session, recipient_keys, tmp_path):
    _route_key(session, "ABCDEFGH", recipient_keys[1])
    session.route("GET", "capabilities/ABCDEFGH", body="text,image")
    doc = tmp_path / "a.txt"
    doc.write_text("x")
    with pytest.raises(NotAllowed):
        helper.send_file_message("ABCDEFGH", doc)
    assert session.calls_to("upload_blob") == []


def test_send_file_upload_failure(helper, session, recipient_keys, tmp_path):
    _route_key(session, "ABCDEFGH", recipient_keys[1])
    session.route("GET", "capabilities/ABCDEFGH", body="file")
    session.route("POST", "upload_blob", status_code=500, body="")
    doc = tmp_path / "a.txt"
    doc.write_text("x")
    with pytest.raises(UploadFailed):
        helper.send_file_message("ABCDEFGH", doc)
    assert session.calls_to("send_e2e") == []


def test_send_file_missing_file(helper, session, recipient_keys, tmp_path):
    _route_key(session, "ABCDEFGH", recipient_keys[1])
    with pytest.raises(InvalidInput):
        helper.send_file_message("ABCDEFGH", tmp_path / "missing.bin")


def test_send_image_is_deprecated(helper, session, recipient_keys, tmp_path):
    _route_key(session, "ABCDEFGH", recipient_keys[1])
    session.route("GET", "capabilities/ABCDEFGH", body="text,image")
    session.route("POST", "upload_blob", body="cc" * 16)
    session.route("POST", "send_e2e", body="0000000000000001")
    img = tmp_path / "a.jpg"
    img.write_bytes(b"\xff\xd8jpeg")
    with pytest.warns(DeprecationWarning):
        assert helper.send_image_message("ABCDEFGH", img) == "0000000000000001"


def test_delivery_receipt_and_ballot(helper, session, sender_keys, recipient_keys):
    r_priv, r_pub = recipient_keys
    _route_key(session, "ABCDEFGH", r_pub)
    session.route("POST", "send_e2e", body="0000000000000002")

    helper.send_delivery_receipt("ABCDEFGH", ReceiptType.READ, ["0123456789abcdef"])
    receipt = _open(session.calls_to("send_e2e")[0], r_priv, sender_keys[1])
    assert isinstance(receipt, DeliveryReceipt)
    assert str(receipt.acked_message_ids[0]) == "0123456789abcdef"

    with pytest.raises(InvalidInput):
        helper.send_delivery_receipt("ABCDEFGH", ReceiptType.READ, [])
    with pytest.raises(InvalidInput):
        helper.send_ballot_create_message(
            "ABCDEFGH", b"\x01" * 7, "q", State.OPEN, VotingMode.SINGLE,
            ResultsDisclosure.CLOSED, 0, [BallotChoice(0, "a", 0)],
        )
    with pytest.raises(InvalidInput):
        helper.send_ballot_create_message(
            "ABCDEFGH", b"\x01" * 8, "q", State.OPEN, VotingMode.SINGLE,
            ResultsDisclosure.CLOSED, 0, [],
        )


def test_group_text_dedupes_recipients(helper, session, sender_keys):
    keys = {ident: generate_keypair() for ident in ("MEMBER01", "MEMBER02")}
    for ident, (_, pub) in keys.items():
        _route_key(session, ident, pub)
    session.route("POST", "send_e2e_bulk", body='[{"identity":"MEMBER02"},{"identity":"MEMBER01"}]')

    res = helper.send_group_text_message(["MEMBER02", "MEMBER01", "MEMBER02"], GROUP, "hi all")
    assert [r["identity"] for r in res] == ["MEMBER02", "MEMBER01"]

    payload = session.calls_to("send_e2e_bulk")[0]["json"]
    assert [e["to"] for e in payload] == ["MEMBER02", "MEMBER01"]
    for entry in payload:
        assert entry["group"] is True
        assert "noPush" not in entry
        priv = keys[entry["to"]][0]
        msg = decrypt_message(b64d(entry["box"]), priv, sender_keys[1], b64d(entry["nonce"]))
        assert msg == GroupTextMessage(GROUP, "hi all")


def test_group_create_sets_no_push(helper, session, sender_keys, recipient_keys):
    r_priv, r_pub = recipient_keys
    _route_key(session, "MEMBER01", r_pub)
    session.route("POST", "send_e2e_bulk", body="[{}]")
    helper.send_group_create_message(["MEMBER01"], GroupId(b"GGGGGGG2"), ["MEMBER01", "*AAAAAA1"])
    entry = session.calls_to("send_e2e_bulk")[0]["json"][0]
    assert entry["noPush"] is True
    msg = decrypt_message(b64d(entry["box"]), r_priv, sender_keys[1], b64d(entry["nonce"]))
    assert msg == GroupCreateMessage(GroupId(b"GGGGGGG2"), ["MEMBER01", "*AAAAAA1"])


def test_group_file_persists_uploads(helper, session, recipient_keys, tmp_path):
    _route_key(session, "MEMBER01", recipient_keys[1])
    session.route("POST", "upload_blob", body="dd" * 16)
    session.route("POST", "send_e2e_bulk", body="[{}]")
    doc = tmp_path / "notes.txt"
    doc.write_text("notes")
    helper.send_group_file_message(["MEMBER01"], GROUP, doc)
    assert session.calls_to("upload_blob")[0]["params"]["persist"] == "true"
    assert session.calls_to("capabilities/MEMBER01") == []


def test_group_without_creator_rejected(helper):
    with pytest.raises(InvalidInput):
        helper.send_group_text_message(["MEMBER01"], GroupId(b"GGGGGGG2"), "x")


def test_group_needs_recipients(helper):
    with pytest.raises(InvalidInput):
        helper.send_group_leave_message([], GROUP)


def _incoming(message, sender_keys, recipient_keys):
    s_priv, _ = sender_keys
    _, r_pub = recipient_keys
    res = encrypt_message(message, s_priv, r_pub)
    return res.result, res.nonce


def test_receive_file_with_thumbnail(connector, session, sender_keys, recipient_keys, tmp_path):
    s_priv, s_pub = sender_keys
    r_priv, r_pub = recipient_keys
    enc = encrypt_file_data(b"file body")
    thumb = encrypt_file_thumbnail_data(b"thumb body", enc.secret)
    session.route("GET", "blobs/" + "aa" * 16, body=enc.result)
    session.route("GET", "blobs/" + "bb" * 16, body=thumb.result)
    _route_key(session, "SENDER01", s_pub)

    receiver = E2EHelper(connector, r_priv)

    content = FileContent(
        blob_id=b"\xaa" * 16, encryption_key=enc.secret, mime_type="text/plain", size=9,
        thumbnail_blob_id=b"\xbb" * 16, file_name="../../etc/doc.txt",
    )
    box, nonce = _incoming(FileMessage(content), sender_keys, recipient_keys)
    result = receiver.receive_message("SENDER01", "0123456789abcdef", box, nonce, tmp_path / "out")

    assert result.errors == []
    names = [p.name for p in result.files]
    assert names == ["0123456789abcdef-doc.txt", "0123456789abcdef-thumbnail.jpg"]
    assert (tmp_path / "out" / "0123456789abcdef-doc.txt").read_bytes() == b"file body"
    assert (tmp_path / "out" / "0123456789abcdef-thumbnail.jpg").read_bytes() == b"thumb body"


def test_receive_group_file_thumbnail_failure(connector, session, sender_keys, recipient_keys, tmp_path):
    s_priv, s_pub = sender_keys
    r_priv, r_pub = recipient_keys
    enc = encrypt_file_data(b"group file")
    session.route("GET", "blobs/" + "aa" * 16, body=enc.result)
    session.route("GET", "blobs/" + "bb" * 16, status_code=404, body="gone")
    _route_key(session, "SENDER01", s_pub)

    receiver = E2EHelper(connector, r_priv)

    content = FileContent(
        blob_id=b"\xaa" * 16, encryption_key=enc.secret, mime_type="text/plain", size=10,
        thumbnail_blob_id=b"\xbb" * 16,
    )
    box, nonce = _incoming(GroupFileMessage(GROUP, content), sender_keys, recipient_keys)
    result = receiver.receive_message("SENDER01", "1111111111111111", box.hex(), nonce.hex(), tmp_path)

    assert [p.name for p in result.files] == ["1111111111111111-unnamed"]
    assert len(result.errors) == 1
    assert result.errors[0].startswith("thumbnail:")


def test_receive_image(connector, session, sender_keys, recipient_keys, tmp_path):
    s_priv, s_pub = sender_keys
    r_priv, r_pub = recipient_keys
    img_nonce = b"\x05" * 24
    blob = box_encrypt(b"jpeg bytes", img_nonce, s_priv, r_pub)
    session.route("GET", "blobs/" + "cc" * 16, body=blob)
    _route_key(session, "SENDER01", s_pub)

    receiver = E2EHelper(connector, r_priv)

    box, nonce = _incoming(ImageMessage(b"\xcc" * 16, len(blob), img_nonce), sender_keys, recipient_keys)
    result = receiver.receive_message("SENDER01", "2222222222222222", box, nonce, tmp_path)
    assert (tmp_path / "2222222222222222.jpg").read_bytes() == b"jpeg bytes"
    assert result.files == [tmp_path / "2222222222222222.jpg"]


def test_receive_text_writes_nothing(connector, session, sender_keys, recipient_keys, tmp_path):
    _route_key(session, "SENDER01", sender_keys[1])
    receiver = E2EHelper(connector, recipient_keys[0])

    box, nonce = _incoming(TextMessage("hi"), sender_keys, recipient_keys)
    result = receiver.receive_message("SENDER01", "3333333333333333", box, nonce, tmp_path / "unused")
    assert result.message == TextMessage("hi")
    assert result.files == []
    assert not (tmp_path / "unused").exists()


def _open_bulk(session, recipient_priv, sender_pub, call=-1, index=0):
    entry = session.calls_to("send_e2e_bulk")[call]["json"][index]
    msg = decrypt_message(b64d(entry["box"]), recipient_priv, sender_pub, b64d(entry["nonce"]))
    return entry, msg


def test_send_location_message(helper, session, sender_keys, recipient_keys):
    r_priv, r_pub = recipient_keys
    _route_key(session, "ABCDEFGH", r_pub)
    session.route("POST", "send_e2e", body="0000000000000003")

    helper.send_location_message("ABCDEFGH", "47.3769", 8.5417, 10, "HB", "Bahnhofplatz")
    msg = _open(session.calls_to("send_e2e")[0], r_priv, sender_keys[1])
    assert msg == LocationMessage(47.3769, 8.5417, 10.0, "HB", "Bahnhofplatz")


@pytest.mark.parametrize("latitude, longitude", [
    ("abc", "1"),
    (None, 8.0),
    (95.0, 8.0),
    (47.0, 200.0),
    (float("nan"), 8.0),
])
def test_location_rejects_bad_coordinates(helper, session, recipient_keys, latitude, longitude):
    _route_key(session, "ABCDEFGH", recipient_keys[1])
    _route_key(session, "MEMBER01", recipient_keys[1])
    with pytest.raises(InvalidInput):
        helper.send_location_message("ABCDEFGH", latitude, longitude)
    with pytest.raises(InvalidInput):
        helper.send_group_location_message(["MEMBER01"], GROUP, latitude, longitude)
    assert session.calls_to("send_e2e") == []
    assert session.calls_to("send_e2e_bulk") == []


def test_send_group_location_message(helper, session, sender_keys, recipient_keys):
    r_priv, r_pub = recipient_keys
    _route_key(session, "MEMBER01", r_pub)
    session.route("POST", "send_e2e_bulk", body="[{}]")

    helper.send_group_location_message(["MEMBER01"], GROUP, -33.86, 151.2, address="Sydney")
    entry, msg = _open_bulk(session, r_priv, sender_keys[1])
    assert "noPush" not in entry
    assert msg == GroupLocationMessage(GROUP, -33.86, 151.2, None, None, "Sydney")


def test_group_set_photo(helper, session, sender_keys, recipient_keys, tmp_path):
    r_priv, r_pub = recipient_keys
    _route_key(session, "MEMBER01", r_pub)
    session.route("POST", "upload_blob", body="ee" * 16)
    session.route("POST", "send_e2e_bulk", body="[{}]")
    photo = tmp_path / "group.jpg"
    photo.write_bytes(b"\xff\xd8group photo")

    helper.send_group_set_photo_message(["MEMBER01"], GroupId(b"GGGGGGG2"), photo)

    upload = session.calls_to("upload_blob")[0]
    assert upload["params"]["persist"] == "true"
    entry, msg = _open_bulk(session, r_priv, sender_keys[1])
    assert entry["noPush"] is True
    assert isinstance(msg, GroupSetPhotoMessage)
    assert msg.group == GroupId(b"GGGGGGG2")
    assert msg.blob_id == b"\xee" * 16
    assert msg.size == len(b"\xff\xd8group photo")

    body = upload["data"]
    cipher = body[body.index(b"\r\n\r\n") + 4:body.rindex(b"\r\n--")]
    assert decrypt_file_data(cipher, msg.encryption_key) == b"\xff\xd8group photo"


def test_group_set_photo_upload_failure(helper, session, recipient_keys, tmp_path):
    _route_key(session, "MEMBER01", recipient_keys[1])
    session.route("POST", "upload_blob", body="not-a-blob-id")
    photo = tmp_path / "group.jpg"
    photo.write_bytes(b"\xff\xd8")
    with pytest.raises(UploadFailed):
        helper.send_group_set_photo_message(["MEMBER01"], GroupId(b"GGGGGGG2"), photo)
    assert session.calls_to("send_e2e_bulk") == []


def test_group_ballot_create(helper, session, sender_keys, recipient_keys):
    r_priv, r_pub = recipient_keys
    _route_key(session, "MEMBER01", r_pub)
    session.route("POST", "send_e2e_bulk", body="[{}]")
    choices = [BallotChoice(0, "Pizza", 0), BallotChoice(1, "Sushi", 1)]

    helper.send_group_ballot_create_message(
        ["MEMBER01"], GROUP, b"\x42" * 8, "Lunch?", State.OPEN, VotingMode.MULTI,
        ResultsDisclosure.INTERMEDIATE, 0, choices,
    )
    entry, msg = _open_bulk(session, r_priv, sender_keys[1])
    assert "noPush" not in entry
    assert isinstance(msg, GroupBallotCreateMessage)
    assert msg.group == GROUP
    assert msg.ballot_id == b"\x42" * 8
    assert msg.ballot.description == "Lunch?"
    assert msg.ballot.voting_mode is VotingMode.MULTI
    assert [c.name for c in msg.ballot.choices] == ["Pizza", "Sushi"]

    with pytest.raises(InvalidInput):
        helper.send_group_ballot_create_message(
            ["MEMBER01"], GROUP, b"\x42" * 8, "Lunch?", 7, VotingMode.MULTI,
            ResultsDisclosure.INTERMEDIATE, 0, choices,
        )


def test_group_ballot_vote(helper, session, sender_keys, recipient_keys):
    r_priv, r_pub = recipient_keys
    _route_key(session, "MEMBER01", r_pub)
    session.route("POST", "send_e2e_bulk", body="[{}]")
    votes = [VoteChoice(0, False), VoteChoice(1, True)]

    helper.send_group_ballot_vote_message(["MEMBER01"], GROUP, "*AAAAAA1", b"\x42" * 8, votes)
    entry, msg = _open_bulk(session, r_priv, sender_keys[1])
    assert "noPush" not in entry
    assert msg == GroupBallotVoteMessage(GROUP, "*AAAAAA1", b"\x42" * 8, votes)

    with pytest.raises(InvalidInput):
        helper.send_group_ballot_vote_message(["MEMBER01"], GROUP, "*AAA", b"\x42" * 8, votes)
    with pytest.raises(InvalidInput):
        helper.send_group_ballot_vote_message(["MEMBER01"], GROUP, "*AAAAAA1", b"\x42" * 7, votes)
    with pytest.raises(InvalidInput):
        helper.send_group_ballot_vote_message(["MEMBER01"], GROUP, "*AAAAAA1", b"\x42" * 8, [])
    assert len(session.calls_to("send_e2e_bulk")) == 1


def test_group_delivery_receipt(helper, session, sender_keys, recipient_keys):
    r_priv, r_pub = recipient_keys
    _route_key(session, "MEMBER01", r_pub)
    session.route("POST", "send_e2e_bulk", body="[{}]")

    helper.send_group_delivery_receipt(["MEMBER01"], GROUP, ReceiptType.USER_ACK, ["0123456789abcdef"])
    _, msg = _open_bulk(session, r_priv, sender_keys[1])
    assert msg == GroupDeliveryReceipt(GROUP, ReceiptType.USER_ACK, [MessageId.from_hex("0123456789abcdef")])

    with pytest.raises(InvalidInput):
        helper.send_group_delivery_receipt(["MEMBER01"], GROUP, ReceiptType.READ, [])
    with pytest.raises(InvalidInput):
        helper.send_group_delivery_receipt(["MEMBER01"], GROUP, 99, ["0123456789abcdef"])


def test_group_management_messages(helper, session, sender_keys, recipient_keys):
    r_priv, r_pub = recipient_keys
    _route_key(session, "MEMBER01", r_pub)
    session.route("POST", "send_e2e_bulk", body="[{}]")
    gid = GroupId(b"GGGGGGG2")

    helper.send_group_rename_message(["MEMBER01"], gid, "New name")
    entry, msg = _open_bulk(session, r_priv, sender_keys[1])
    assert entry["noPush"] is True
    assert msg == GroupRenameMessage(gid, "New name")

    helper.send_group_delete_photo_message(["MEMBER01"], gid)
    entry, msg = _open_bulk(session, r_priv, sender_keys[1])
    assert entry["noPush"] is True
    assert msg == GroupDeletePhotoMessage(gid)

    helper.send_group_request_sync_message(["MEMBER01"], gid)
    entry, msg = _open_bulk(session, r_priv, sender_keys[1])
    assert "noPush" not in entry
    assert msg == GroupRequestSyncMessage(gid)

    helper.send_group_leave_message(["MEMBER01"], GROUP)
    entry, msg = _open_bulk(session, r_priv, sender_keys[1])
    assert "noPush" not in entry
    assert msg == GroupLeaveMessage(GROUP)

    with pytest.raises(InvalidInput):
        helper.send_group_rename_message(["MEMBER01"], gid, "")
    with pytest.raises(InvalidInput):
        helper.send_group_leave_message(["MEMBER01"], gid)
    assert len(session.calls_to("send_e2e_bulk")) == 4
