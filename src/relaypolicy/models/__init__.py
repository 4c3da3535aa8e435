"""Pure frozen dataclasses with zero I/O for hosted relays and their policy lists.

The models layer is the foundation of the diamond DAG. It has **no dependencies**
on any other relaypolicy package, only the Python standard library. Every model
uses ``@dataclass(frozen=True, slots=True)`` and validates in ``__post_init__``
so invalid instances never escape the constructor. Records read from the
database are built with ``from_db_row()``.

Attributes:
    Relay: A hosted relay with its write-access policy flags.
    User: A platform account identified by its hex public key.
    Moderator: A user granted administration authority over one relay.
    PolicyList: An allow-list or block-list container.
    PubkeyEntry: A pubkey entry with its reason.
    KeywordEntry: A keyword entry with its reason.
    KindEntry: An event-kind entry with its reason.
    Job: A queued ``deletePubkey`` / ``deleteEvent`` job.

See Also:
    [relaypolicy.models.constants][]: Shared enumerations.
    [relaypolicy.core.store][]: Builds these records from rows.
"""

from .acl import KeywordEntry, KindEntry, PolicyList, PubkeyEntry
from .constants import (
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
from .job import Job, JobDbParams
from .relay import Relay
from .user import Moderator, User


__all__ = [
    "ACTIVE_STATUSES",
    "EVENT_KIND_MAX",
    "AuthorizationStatus",
    "ConnectionMode",
    "EventKind",
    "Job",
    "JobDbParams",
    "JobKind",
    "JobStatus",
    "KeywordEntry",
    "KindEntry",
    "ListType",
    "Moderator",
    "PolicyList",
    "PubkeyEntry",
    "Relay",
    "RelayStatus",
    "User",
]
