from datetime import datetime
from types import SimpleNamespace

import pytest

from qrservice.errors import DependencyError
from qrservice.services.cache import ArtifactCache
from qrservice.services.style import Style


class RecordingStore:
    def __init__(self, fail_save=False):
        self.lookups = []
        self.fail_save = fail_save

    def find_cached(self, content, owner_id, channel, style):
        self.lookups.append((content, owner_id, channel, style))
        return None

    def save(self, artifact):
        if self.fail_save:
            raise DependencyError('Store write failed')
        return artifact


def test_style_is_part_of_key_by_default():
    store = RecordingStore()
    ArtifactCache(store).lookup('https://a.test', 1, 'apikey', Style(size=500))
    assert store.lookups[0][3] == Style(size=500)


def test_style_can_be_left_out_of_key():
    store = RecordingStore()
    ArtifactCache(store, include_style=False).lookup('https://a.test', 1, 'apikey', Style(size=500))
    assert store.lookups[0][3] is None


def test_record_hit_bumps_counter_and_timestamp():
    artifact = SimpleNamespace(id=1, access_count=1, last_accessed=None)
    now = datetime(2024, 1, 1)
    ArtifactCache(RecordingStore()).record_hit(artifact, now)
    assert artifact.access_count == 2
    assert artifact.last_accessed == now


def test_record_hit_failure_is_logged_not_raised(caplog):
    artifact = SimpleNamespace(id=1, access_count=1, last_accessed=None)
    ArtifactCache(RecordingStore(fail_save=True)).record_hit(artifact, datetime(2024, 1, 1))
    assert 'Could not record access' in caplog.text


def test_record_hit_failure_raises_in_strict_mode():
    artifact = SimpleNamespace(id=1, access_count=1, last_accessed=None)
    with pytest.raises(DependencyError):
        ArtifactCache(RecordingStore(fail_save=True), strict=True).record_hit(artifact, datetime(2024, 1, 1))
