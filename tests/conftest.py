import pytest
from fastapi.testclient import TestClient

from blob_gateway.adapters.mirror import MirrorWriter
from blob_gateway.config.settings import Settings
from blob_gateway.dependencies import ServiceContext
from blob_gateway.main import create_app
from tests.consts import (
    FROZEN_EPOCH,
    TEST_AUDIO_BUCKET,
    TEST_HANDLE_PATH,
    TEST_IMAGE_BUCKET,
    TEST_VIDEO_BUCKET,
)

pytest_plugins = [
    "tests.fixtures.store_fixtures",
    "tests.fixtures.mirror_fixtures",
]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        handle_path=TEST_HANDLE_PATH,
        image_bucket=TEST_IMAGE_BUCKET,
        audio_bucket=TEST_AUDIO_BUCKET,
        video_bucket=TEST_VIDEO_BUCKET,
        buffer_size=4,
        max_upload_size=1024 * 1024,
        debug=True,
    )


@pytest.fixture
def mirror_sink(recording_sink):
    """Override in a test module to swap the sink the mirror writes to."""
    return recording_sink


@pytest.fixture
def mirror(mirror_sink):
    writer = MirrorWriter(mirror_sink, max_workers=2)
    yield writer
    writer.shutdown(wait=True)


@pytest.fixture
def context(settings, fake_store, mirror) -> ServiceContext:
    return ServiceContext(
        settings=settings,
        store=fake_store,
        mirror=mirror,
        clock=lambda: FROZEN_EPOCH,
    )


@pytest.fixture
def client(context) -> TestClient:
    """Test client over an app wired to the fake store and the mirror fixture."""
    app = create_app(context=context)
    return TestClient(app)
