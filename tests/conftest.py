"""Shared fixtures for the selection creator tests."""

import pytest

from selection_creator.core.models import SelectionConfig
from selection_creator.testing.fakes import (
    FakeLogger,
    FakeRecordStore,
    setup_test_image_directory,
    setup_test_s3_environment,
)


@pytest.fixture
def image_dir(tmp_path):
    """Directory with beach.jpg, mountain.JPEG, portrait.png and readme.txt."""
    return setup_test_image_directory(str(tmp_path / "images"))


@pytest.fixture
def make_config():
    """Build a SelectionConfig pointing at the fake bucket."""

    def _make(input_dir, **overrides):
        values = dict(
            region="eu-west-1",
            bucket="test-selection",
            username="alice",
            event_id="ev1",
            event_title="Summer Wedding",
            max_number_of_photos=25,
            input_dir=input_dir,
            processor="serial",
        )
        values.update(overrides)
        return SelectionConfig(**values)

    return _make


@pytest.fixture
def fake_s3():
    return setup_test_s3_environment("test-selection")


@pytest.fixture
def fake_store():
    return FakeRecordStore()


@pytest.fixture
def fake_logger():
    return FakeLogger()
