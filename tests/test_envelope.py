"""Тесты канонического сообщения и валидатора."""

from datetime import datetime, timezone

import pytest

from conftest import T0, wire
from dart_taskmaster_sync.models import (
    Envelope,
    InvalidEnvelope,
    Payload,
    Source,
    UpdateType,
    validate,
)


class TestValidate:
    """validate() на словарях в формате JSON-схемы"""

    def test_minimal_message_is_valid(self):
        assert validate(wire()) is True

    @pytest.mark.parametrize(
        "field, value",
        [
            ("source", "Jira"),
            ("source", None),
            ("task_id", ""),
            ("task_id", 42),
            ("update_type", "archive"),
            ("timestamp", None),
            ("payload", None),
        ],
    )
    def test_bad_top_level_field(self, field, value):
        candidate = wire()
        candidate[field] = value
        assert validate(candidate) is False

    def test_missing_status_is_invalid(self):
        candidate = wire()
        del candidate["payload"]["status"]
        assert validate(candidate) is False

    def test_non_mapping_is_invalid(self):
        assert validate(None) is False
        assert validate(["ServiceA"]) is False

    def test_validation_has_no_side_effects(self):
        candidate = wire(title="Demo")
        snapshot = repr(candidate)
        validate(candidate)
        assert repr(candidate) == snapshot

    def test_constructed_envelope(self):
        envelope = Envelope(Source.SERVICE_B, "7", UpdateType.UPDATE, T0, Payload(status="pending"))
        assert validate(envelope) is True
        assert validate(Envelope(Source.SERVICE_B, "", UpdateType.UPDATE, T0, Payload(status="pending"))) is False
        assert validate(Envelope(Source.SERVICE_B, "7", UpdateType.UPDATE, T0, Payload(status=""))) is False


class TestFromWire:
    """Разбор JSON-представления"""

    def test_parses_all_fields(self):
        envelope = Envelope.from_wire(
            wire(
                "update",
                title="Demo",
                description="text",
                priority="high",
                due_date="2024-06-01",
                assignee="ann",
                metadata={"remoteId": "X1", "extra": 1},
            )
        )
        assert envelope.source is Source.SERVICE_A
        assert envelope.update_type is UpdateType.UPDATE
        assert envelope.timestamp == T0
        assert envelope.payload.title == "Demo"
        assert envelope.payload.due_date == "2024-06-01"
        assert envelope.payload.remote_id == "X1"
        assert envelope.payload.metadata["extra"] == 1

    def test_invalid_message_raises(self):
        with pytest.raises(InvalidEnvelope):
            Envelope.from_wire(wire(update_type="archive"))

    def test_unparsable_timestamp_raises(self):
        candidate = wire()
        candidate["timestamp"] = "yesterday-ish"
        with pytest.raises(InvalidEnvelope):
            Envelope.from_wire(candidate)

    def test_to_wire_omits_absent_fields(self):
        data = Envelope.from_wire(wire(title="Demo")).to_wire()
        assert data["payload"] == {"status": "To-do", "title": "Demo"}
        assert data["timestamp"] == T0.isoformat()


class TestImmutability:
    """Сообщение неизменяемо после создания"""

    def test_fields_are_frozen(self):
        envelope = Envelope.from_wire(wire())
        with pytest.raises(AttributeError):
            envelope.task_id = "other"

    def test_metadata_is_read_only_copy(self):
        source_metadata = {"remoteId": "X1"}
        payload = Payload(status="To-do", metadata=source_metadata)
        source_metadata["remoteId"] = "changed"
        assert payload.remote_id == "X1"
        with pytest.raises(TypeError):
            payload.metadata["remoteId"] = "X2"


class TestFingerprint:
    """Отпечаток строится из источника, идентификатора и метки времени"""

    def test_same_event_same_fingerprint(self):
        first = Envelope.from_wire(wire(title="a"))
        second = Envelope.from_wire(wire(title="b"))
        assert first.fingerprint == second.fingerprint

    def test_differs_by_source_and_time(self):
        base = Envelope.from_wire(wire())
        other_source = Envelope.from_wire(wire(source="ServiceB"))
        later = Envelope.from_wire(wire(timestamp=datetime(2024, 5, 1, 12, 1, tzinfo=timezone.utc)))
        assert len({base.fingerprint, other_source.fingerprint, later.fingerprint}) == 3
