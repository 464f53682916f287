from fastapi import status
from fastapi.testclient import TestClient

from blob_gateway.content import ContentCategory
from tests.consts import FROZEN_EPOCH, TEST_HANDLE_PATH
from tests.fixtures.image_fixtures import image_size, make_image_bytes

# Constants for testing
UPLOAD_URL = f"{TEST_HANDLE_PATH}/upload"
DOWNLOAD_URL = f"{TEST_HANDLE_PATH}/download"
THUMBNAIL_URL = f"{TEST_HANDLE_PATH}/thumbnail"
TEST_FILE_CONTENT = b"abc"
TEST_UID = "42"


def upload(client: TestClient, content: bytes, uid: str = None, filename: str = "file.bin"):
    headers = {"uid": uid} if uid is not None else {}
    return client.post(
        UPLOAD_URL,
        files={"upload": (filename, content, "application/octet-stream")},
        headers=headers,
    )


def test__upload_then_download__frozen_clock(client: TestClient):
    response = upload(client, TEST_FILE_CONTENT, uid=TEST_UID)

    assert response.status_code == status.HTTP_200_OK
    expected_key = str(FROZEN_EPOCH + 42 + 3)
    assert response.json() == {"fid": expected_key, "result": "OK"}

    response = client.get(DOWNLOAD_URL, params={"fid": expected_key})
    assert response.status_code == status.HTTP_200_OK
    assert response.content == TEST_FILE_CONTENT


def test__download__headers_match_stored_object(client: TestClient, fake_store):
    payload = bytes(range(256)) * 10
    fid = upload(client, payload).json()["fid"]

    response = client.get(DOWNLOAD_URL, params={"fid": fid}, headers={"uid": "7"})

    assert response.status_code == status.HTTP_200_OK
    assert response.content == payload
    assert response.headers["Content-Length"] == str(len(payload))
    assert response.headers["Content-MD5"] == fake_store.latest(fid).checksum
    assert response.headers["Content-Type"] == "application/octet-stream"


def test__upload__stores_sniffed_type_and_raw_uid(client: TestClient, fake_store):
    png = make_image_bytes(10, 10)
    fid = upload(client, png, uid=TEST_UID, filename="photo.txt").json()["fid"]

    stored = fake_store.latest(fid)
    assert stored.content_type == "image/png"
    assert stored.owner_uid == TEST_UID
    assert stored.data == png


def test__upload__non_numeric_uid_counts_as_zero(client: TestClient):
    response = upload(client, TEST_FILE_CONTENT, uid="alice")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["fid"] == str(FROZEN_EPOCH + 3)


def test__upload__missing_uid_counts_as_zero(client: TestClient):
    response = upload(client, b"hello")

    assert response.json()["fid"] == str(FROZEN_EPOCH + 5)


def test__upload__colliding_keys_overwrite(client: TestClient):
    first = upload(client, b"abc", uid=TEST_UID).json()["fid"]
    second = upload(client, b"xyz", uid=TEST_UID).json()["fid"]

    assert first == second
    response = client.get(DOWNLOAD_URL, params={"fid": first})
    assert response.content == b"xyz"


def test__upload__mirrors_images_to_image_bucket(client: TestClient, context, recording_sink):
    png = make_image_bytes(8, 8)
    fid = upload(client, png).json()["fid"]

    context.mirror.shutdown(wait=True)

    assert recording_sink.puts == [(fid, ContentCategory.IMAGE, png, "image/png")]


def test__upload__unsupported_type_is_not_mirrored(client: TestClient, context, recording_sink):
    response = upload(client, TEST_FILE_CONTENT, uid=TEST_UID)
    assert response.status_code == status.HTTP_200_OK

    context.mirror.shutdown(wait=True)

    assert recording_sink.puts == []


def test__thumbnail__fixed_width_keeps_aspect_ratio(client: TestClient, settings):
    png = make_image_bytes(400, 300)
    fid = upload(client, png).json()["fid"]

    response = client.get(THUMBNAIL_URL, params={"fid": fid})

    assert response.status_code == status.HTTP_200_OK
    (width, height), image_format = image_size(response.content)
    assert width == settings.thumbnail_width
    assert height == 150
    assert image_format == "PNG"
    assert response.headers["Content-Type"] == "image/png"
    assert response.headers["Content-Length"] == str(len(response.content))


def test__thumbnail__jpeg_source(client: TestClient):
    jpeg = make_image_bytes(640, 480, image_format="JPEG")
    fid = upload(client, jpeg).json()["fid"]

    response = client.get(THUMBNAIL_URL, params={"fid": fid})

    assert response.status_code == status.HTTP_200_OK
    (width, height), image_format = image_size(response.content)
    assert (width, height) == (200, 150)
    assert image_format == "JPEG"
    assert response.headers["Content-Type"] == "image/jpeg"


def test__thumbnail__ignores_stored_content_type(client: TestClient, fake_store):
    fake_store.put("123", make_image_bytes(50, 100), content_type="application/octet-stream")

    response = client.get(THUMBNAIL_URL, params={"fid": "123"})

    assert response.status_code == status.HTTP_200_OK
    (width, height), _ = image_size(response.content)
    assert (width, height) == (200, 400)


def test__thumbnail__recomputed_on_every_request(client: TestClient, fake_store):
    fid = upload(client, make_image_bytes(300, 300)).json()["fid"]
    checkouts_before = fake_store.total_checkouts

    first = client.get(THUMBNAIL_URL, params={"fid": fid})
    second = client.get(THUMBNAIL_URL, params={"fid": fid})

    assert first.content == second.content
    assert fake_store.total_checkouts == checkouts_before + 2


def test__health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "status": "ok",
        "components": {"api": "ready", "primary_store": "ready"},
        "ready": True,
    }
