"""Unit tests for models.relay module."""

import pytest

from relaypolicy.models import Relay, RelayStatus


def _row(**overrides: object) -> dict[str, object]:
    row: dict[str, object] = {
        "id": "r1",
        "name": "nostr",
        "domain": "example.com",
        "owner_id": "u1",
        "status": "running",
        "default_message_policy": None,
        "auth_required": True,
        "allow_tagged": None,
        "allow_giftwrap": False,
        "is_external": False,
        "request_payment": None,
        "details": "A relay",
        "banner_image": None,
    }
    row.update(overrides)
    return row


class TestRelayConstruction:
    def test_defaults(self) -> None:
        relay = Relay(id="r1", name="nostr", domain="example.com", owner_id="u1")
        assert relay.status is None
        assert relay.default_message_policy is False
        assert relay.allow_tagged is False
        assert relay.details is None

    def test_status_coerced(self) -> None:
        relay = Relay(id="r1", name="n", domain="d", owner_id="u1", status="paused")
        assert relay.status is RelayStatus.PAUSED

    def test_unknown_status_rejected(self) -> None:
        with pytest.raises(ValueError):
            Relay(id="r1", name="n", domain="d", owner_id="u1", status="exploded")

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="id must not be empty"):
            Relay(id="", name="n", domain="d", owner_id="u1")

    def test_non_bool_flag_rejected(self) -> None:
        with pytest.raises(TypeError, match="allow_tagged must be a bool"):
            Relay(id="r1", name="n", domain="d", owner_id="u1", allow_tagged=1)  # type: ignore[arg-type]

    def test_frozen(self) -> None:
        relay = Relay(id="r1", name="n", domain="d", owner_id="u1")
        with pytest.raises(AttributeError):
            relay.name = "other"  # type: ignore[misc]


class TestRelayFromDbRow:
    def test_null_flags_read_as_false(self) -> None:
        relay = Relay.from_db_row(_row())
        assert relay.default_message_policy is False
        assert relay.allow_tagged is False
        assert relay.request_payment is False
        assert relay.auth_required is True
        assert relay.status is RelayStatus.RUNNING

    def test_null_name_and_domain(self) -> None:
        relay = Relay.from_db_row(_row(name=None, domain="relay.custom.org", is_external=True))
        assert relay.name == ""
        assert relay.domain == "relay.custom.org"

    def test_text_columns(self) -> None:
        relay = Relay.from_db_row(_row(banner_image="https://img"))
        assert relay.details == "A relay"
        assert relay.banner_image == "https://img"

    @pytest.mark.parametrize("status", ["pending", "error", ""])
    def test_unknown_status_read_as_none(self, status: str) -> None:
        relay = Relay.from_db_row(_row(status=status))
        assert relay.status is None
        assert relay.id == "r1"

    def test_null_status(self) -> None:
        assert Relay.from_db_row(_row(status=None)).status is None
