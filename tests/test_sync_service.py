from datetime import timedelta

from clipkeep.models.clipboarditem import ClipboardItem
from clipkeep.services.sync_service import (
    ConflictResolution,
    SyncService,
    SyncStatus,
    resolve_conflict,
)

from conftest import make_text


class RecordingBackend:
    def __init__(self, available=True, error=None):
        self.available = available
        self.error = error
        self.pushed = []

    def is_available(self):
        return self.available

    def push(self, items, pinboards):
        if self.error is not None:
            raise self.error
        self.pushed.append((list(items), list(pinboards)))


def _service(settings_store, item_store, pinboard_store, clock, backend):
    return SyncService(settings_store, lambda: (item_store.items, pinboard_store.pinboards),
                       backend=backend, clock=clock)


def test_sync_pushes_snapshot_and_records_date(settings_store, item_store, pinboard_store,
                                               clock):
    item_store.insert(ClipboardItem.text("to the cloud"))
    pinboard_store.create("Board")
    backend = RecordingBackend()
    service = _service(settings_store, item_store, pinboard_store, clock, backend)

    status = service.sync()

    assert status == SyncStatus.success(clock())
    items, pinboards = backend.pushed[0]
    assert [i.raw_content for i in items] == ["to the cloud"]
    assert [p.name for p in pinboards] == ["Board"]
    assert settings_store.settings.lastSyncDate == clock()
    assert service.last_status is status


def test_sync_disabled(settings_store, item_store, pinboard_store, clock):
    settings_store.update(syncEnabled=False)
    backend = RecordingBackend()
    status = _service(settings_store, item_store, pinboard_store, clock, backend).sync()

    assert status.ok is False
    assert status.message == "Sync disabled"
    assert backend.pushed == []


def test_missing_or_unavailable_backend(settings_store, item_store, pinboard_store, clock):
    for backend in (None, RecordingBackend(available=False)):
        status = _service(settings_store, item_store, pinboard_store, clock, backend).sync()
        assert status.ok is False
        assert status.message == "Sync backend unavailable"
    assert settings_store.settings.lastSyncDate is None


def test_backend_failure_is_reported_without_retry(settings_store, item_store,
                                                   pinboard_store, clock):
    backend = RecordingBackend(error=ConnectionError("offline"))
    service = _service(settings_store, item_store, pinboard_store, clock, backend)

    status = service.sync()

    assert status == SyncStatus.error("offline")
    assert settings_store.settings.lastSyncDate is None


def test_merge_prefers_newer_side_and_unions_lists(clock):
    local = make_text("same", clock(), tags=["a", "b"], pinboardIds=["p_1"])
    remote = local.model_copy(update={
        "timestamp": clock() + timedelta(minutes=1),
        "tags": ["b", "c"],
        "pinboardIds": ["p_2"],
        "sourceApp": "com.remote",
    })

    merged = resolve_conflict(local, remote)

    assert merged.timestamp == remote.timestamp
    assert merged.sourceApp == "com.remote"
    assert merged.tags == ["b", "c", "a"]
    assert merged.pinboardIds == ["p_2", "p_1"]
    assert merged.isPinned


def test_keep_local_and_keep_remote(clock):
    local = make_text("mine", clock())
    remote = local.model_copy(update={"tags": ["theirs"]})

    assert resolve_conflict(local, remote, ConflictResolution.KEEP_LOCAL).tags == []
    assert resolve_conflict(local, remote, ConflictResolution.KEEP_REMOTE).tags == ["theirs"]
