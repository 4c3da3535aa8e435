"""Unit tests for models.constants module."""

from enum import IntEnum, StrEnum

from relaypolicy.models.constants import (
    ACTIVE_STATUSES,
    EVENT_KIND_MAX,
    AuthorizationStatus,
    ConnectionMode,
    EventKind,
    JobKind,
    JobStatus,
    ListType,
    RelayStatus,
)


class TestRelayStatus:
    """Tests for RelayStatus StrEnum."""

    def test_all_values(self) -> None:
        expected = {"provision", "provisioning", "running", "paused", "deleting", "deleted"}
        assert {v.value for v in RelayStatus} == expected

    def test_active_statuses(self) -> None:
        assert frozenset({RelayStatus.RUNNING, RelayStatus.PROVISION}) == ACTIVE_STATUSES
        assert RelayStatus.PAUSED not in ACTIVE_STATUSES

    def test_string_comparison(self) -> None:
        assert RelayStatus.RUNNING == "running"
        assert RelayStatus("provision") is RelayStatus.PROVISION


class TestListType:
    """Tests for ListType StrEnum."""

    def test_values(self) -> None:
        assert ListType.ALLOW == "allow"
        assert ListType.BLOCK == "block"

    def test_opposite(self) -> None:
        assert ListType.ALLOW.opposite is ListType.BLOCK
        assert ListType.BLOCK.opposite is ListType.ALLOW


class TestJobEnums:
    """Tests for JobKind and JobStatus."""

    def test_job_kind_wire_values(self) -> None:
        assert JobKind.DELETE_PUBKEY.value == "deletePubkey"
        assert JobKind.DELETE_EVENT.value == "deleteEvent"

    def test_job_status_queue(self) -> None:
        assert JobStatus.QUEUE.value == "queue"
        assert isinstance(JobStatus.QUEUE, StrEnum)


class TestAuthorizationStatus:
    """Tests for AuthorizationStatus StrEnum."""

    def test_members(self) -> None:
        assert {m.name for m in AuthorizationStatus} == {
            "NOT_FOUND",
            "UNAUTHORIZED",
            "FULL",
            "PARTIAL",
        }

    def test_full_and_partial_are_distinct(self) -> None:
        assert AuthorizationStatus.FULL != AuthorizationStatus.PARTIAL

    def test_authorized(self) -> None:
        assert AuthorizationStatus.FULL.authorized
        assert AuthorizationStatus.PARTIAL.authorized
        assert not AuthorizationStatus.UNAUTHORIZED.authorized
        assert not AuthorizationStatus.NOT_FOUND.authorized


class TestConnectionMode:
    """Tests for ConnectionMode StrEnum."""

    def test_wire_values(self) -> None:
        assert ConnectionMode.AUTH_REQUIRED.value == "authrequired"
        assert ConnectionMode.AUTH_NONE.value == "authnone"
        assert ConnectionMode.AUTH_NONE_REQUEST_PAYMENT.value == "authnone:requestpayment"


class TestEventKind:
    """Tests for EventKind IntEnum and EVENT_KIND_MAX."""

    def test_http_auth(self) -> None:
        assert EventKind.HTTP_AUTH == 27235
        assert isinstance(EventKind.HTTP_AUTH, IntEnum)

    def test_kind_max(self) -> None:
        assert EVENT_KIND_MAX == 65535

    def test_reexported_from_models_init(self) -> None:
        from relaypolicy.models import EventKind as ReexportedEventKind

        assert ReexportedEventKind is EventKind
