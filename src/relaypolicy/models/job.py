"""Downstream deletion jobs.

Jobs are the only side channel between the policy subsystem and the relay
daemons: a ban enqueues a ``deletePubkey`` job, a ``banevent`` command a
``deleteEvent`` job. This subsystem only ever writes rows in the ``queue``
status; consuming them is somebody else's problem.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple

from ._validation import validate_hex64, validate_str_not_empty
from .constants import JobKind, JobStatus


class JobDbParams(NamedTuple):
    """Column-ordered parameters for inserting a ``job`` row."""

    relay_id: str
    kind: JobKind
    status: JobStatus
    pubkey: str | None
    event_id: str | None


@dataclass(frozen=True, slots=True)
class Job:
    """A queued deletion job.

    Exactly one target is set, matching the job kind: ``pubkey`` for
    ``deletePubkey`` and ``event_id`` for ``deleteEvent``.

    Attributes:
        relay_id: Relay whose stored events are affected.
        kind: What to delete.
        pubkey: Author whose events are deleted (``deletePubkey`` only).
        event_id: Id of the event to delete (``deleteEvent`` only).
        status: Always ``queue`` when written by this subsystem.

    Raises:
        ValueError: If the target does not match the kind or is not 64-char hex.

    Examples:
        ```python
        Job.delete_event("r1", "ab" * 32).to_db_params()
        # JobDbParams(relay_id='r1', kind='deleteEvent', status='queue', pubkey=None, event_id='abab...')
        ```
    """

    relay_id: str
    kind: JobKind
    pubkey: str | None = None
    event_id: str | None = None
    status: JobStatus = field(default=JobStatus.QUEUE)

    def __post_init__(self) -> None:
        validate_str_not_empty(self.relay_id, "relay_id")
        object.__setattr__(self, "kind", JobKind(self.kind))
        object.__setattr__(self, "status", JobStatus(self.status))

        if self.kind is JobKind.DELETE_PUBKEY:
            if self.pubkey is None or self.event_id is not None:
                raise ValueError("deletePubkey jobs carry a pubkey and no event_id")
            validate_hex64(self.pubkey, "pubkey")
        else:
            if self.event_id is None or self.pubkey is not None:
                raise ValueError("deleteEvent jobs carry an event_id and no pubkey")
            validate_hex64(self.event_id, "event_id")

    @classmethod
    def delete_pubkey(cls, relay_id: str, pubkey: str) -> Job:
        return cls(relay_id=relay_id, kind=JobKind.DELETE_PUBKEY, pubkey=pubkey)

    @classmethod
    def delete_event(cls, relay_id: str, event_id: str) -> Job:
        return cls(relay_id=relay_id, kind=JobKind.DELETE_EVENT, event_id=event_id)

    def to_db_params(self) -> JobDbParams:
        return JobDbParams(
            relay_id=self.relay_id,
            kind=self.kind,
            status=self.status,
            pubkey=self.pubkey,
            event_id=self.event_id,
        )
