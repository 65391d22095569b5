"""Тесты соответствия статусов."""

import pytest

from dart_taskmaster_sync.config import SyncOptions
from dart_taskmaster_sync.services import StatusMapper


@pytest.fixture
def mapper():
    return StatusMapper()


class TestStatusMapper:
    """Табличное и намеренно небиективное преобразование"""

    @pytest.mark.parametrize("remote, local", [("To-do", "pending"), ("Doing", "in-progress"), ("Done", "done")])
    def test_known_statuses(self, mapper, remote, local):
        assert mapper.to_local(remote) == local
        assert mapper.to_remote(local) == remote

    def test_unknown_remote_defaults_to_pending(self, mapper):
        assert mapper.to_local("unknown-value") == "pending"
        assert mapper.to_local(None) == "pending"

    def test_unknown_local_defaults_to_todo(self, mapper):
        assert mapper.to_remote("deferred") == "To-do"

    def test_round_trip_is_lossy_for_unknown_values(self, mapper):
        assert mapper.to_remote(mapper.to_local("Doing")) == "Doing"
        assert mapper.to_remote(mapper.to_local("bogus")) == "To-do"

    def test_done_values(self, mapper):
        assert mapper.local_done == "done"
        assert mapper.remote_done == "Done"

    def test_overrides_from_options(self):
        options = SyncOptions(
            status_to_local={"Open": "pending", "Closed": "done"},
            status_to_remote={"pending": "Open", "done": "Closed"},
        )
        mapper = StatusMapper.from_options(options)
        assert mapper.to_local("Closed") == "done"
        assert mapper.to_remote("done") == "Closed"
        assert mapper.remote_done == "Closed"
