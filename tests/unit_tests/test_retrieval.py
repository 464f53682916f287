import pytest

from blob_gateway.errors import NotFoundError, StoreError
from blob_gateway.services.retrieval import open_object_stream


def test_stream__yields_chunks_and_releases(context, fake_store):
    fake_store.put("1", b"0123456789", content_type="text/plain; charset=utf-8")

    stream = open_object_stream(context, "1")
    assert fake_store.active_checkouts == 1

    assert list(stream) == [b"0123", b"4567", b"89"]
    assert fake_store.active_checkouts == 0
    assert fake_store.opened[0].closed


def test_stream__headers(context, fake_store):
    fake_store.put("2", b"hello", content_type="text/plain; charset=utf-8")

    stream = open_object_stream(context, "2")
    try:
        assert stream.headers == {
            "Content-MD5": fake_store.latest("2").checksum,
            "Content-Type": "text/plain; charset=utf-8",
            "Content-Length": "5",
        }
    finally:
        stream.close()


def test_stream__no_content_type_header_when_unknown(context, fake_store):
    fake_store.put("3", b"hello")

    stream = open_object_stream(context, "3")
    stream.close()

    assert "Content-Type" not in stream.headers


def test_stream__mid_stream_failure_releases(context, fake_store):
    fake_store.put("4", b"0123456789")
    fake_store.fail_after_chunks = 1

    stream = open_object_stream(context, "4")
    chunks = iter(stream)
    assert next(chunks) == b"0123"
    with pytest.raises(StoreError):
        next(chunks)

    assert fake_store.active_checkouts == 0
    assert fake_store.opened[0].closed


def test_stream__close_without_iterating(context, fake_store):
    fake_store.put("5", b"data")

    stream = open_object_stream(context, "5")
    stream.close()
    stream.close()

    assert fake_store.active_checkouts == 0
    assert fake_store.opened[0].closed


def test_open__unknown_key(context, fake_store):
    with pytest.raises(NotFoundError):
        open_object_stream(context, "missing")
    assert fake_store.active_checkouts == 0


def test_open__latest_version_wins(context, fake_store):
    fake_store.put("6", b"old")
    fake_store.put("6", b"new")

    assert b"".join(open_object_stream(context, "6")) == b"new"
