"""Administrative command dispatcher.

Serves NIP-86 relay management requests. Each request moves through a
fixed sequence of states and stops at the first failure:

```text
unauthenticated --verify NIP-98--> identity recovered
                --load relay, check authority--> authority checked
                --parse and apply command--> executed
```

Every failure maps to one stable [ErrorCode][relaypolicy.services.dispatcher.ErrorCode]
with a suggested HTTP status, so the transport in front of the dispatcher
only has to serialize a [Nip86Response][relaypolicy.services.dispatcher.Nip86Response].
The dispatcher never raises for a bad request; only cancellation escapes.

See Also:
    [verify_http_auth()][relaypolicy.nips.nip98.verify_http_auth]: Step one.
    [AuthorizationEngine][relaypolicy.services.authorization.AuthorizationEngine]:
        Administration authority check.
    [AclService][relaypolicy.services.acl.AclService]: Command execution.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from relaypolicy.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DatabaseError,
    InvalidInputError,
    MissingParamsError,
    RelayNotFoundError,
    UnknownMethodError,
)
from relaypolicy.core.logger import Logger
from relaypolicy.core.metrics import ADMIN_COMMANDS_TOTAL
from relaypolicy.nips.nip86 import COMMAND_REGISTRY, parse_command
from relaypolicy.nips.nip98 import HttpAuthConfig, verify_http_auth

from .acl import AclService
from .authorization import AuthorizationEngine


if TYPE_CHECKING:
    from relaypolicy.core.store import PolicyStore


class ErrorCode(StrEnum):
    """Stable error codes returned to NIP-86 clients.

    Attributes:
        MISSING_CREDENTIAL: No ``Authorization`` header was supplied.
        INVALID_CREDENTIAL: The NIP-98 credential was rejected.
        RELAY_NOT_FOUND: The relay id is unknown.
        FORBIDDEN: The signer neither owns nor moderates the relay.
        UNKNOWN_METHOD: The method is not supported.
        MISSING_PARAMS: Too few parameters for the method.
        INVALID_PARAMS: A parameter is malformed.
        INTERNAL_ERROR: The store failed.
    """

    MISSING_CREDENTIAL = "missing_credential"
    INVALID_CREDENTIAL = "invalid_credential"
    RELAY_NOT_FOUND = "relay_not_found"
    FORBIDDEN = "forbidden"
    UNKNOWN_METHOD = "unknown_method"
    MISSING_PARAMS = "missing_params"
    INVALID_PARAMS = "invalid_params"
    INTERNAL_ERROR = "internal_error"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.MISSING_CREDENTIAL: 401,
    ErrorCode.INVALID_CREDENTIAL: 401,
    ErrorCode.RELAY_NOT_FOUND: 404,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.UNKNOWN_METHOD: 400,
    ErrorCode.MISSING_PARAMS: 400,
    ErrorCode.INVALID_PARAMS: 400,
    ErrorCode.INTERNAL_ERROR: 500,
}


@dataclass(frozen=True, slots=True)
class Nip86Response:
    """Outcome of one administrative request.

    Exactly one of ``result`` (on success) or ``code`` (on failure) is
    meaningful; ``error`` carries a human-readable message for failures.
    """

    result: Any = None
    error: str | None = None
    code: ErrorCode | None = None

    @classmethod
    def success(cls, result: Any) -> Nip86Response:
        return cls(result=result)

    @classmethod
    def failure(cls, code: ErrorCode, error: str) -> Nip86Response:
        return cls(error=error, code=code)

    @property
    def ok(self) -> bool:
        return self.code is None

    @property
    def http_status(self) -> int:
        return 200 if self.code is None else self.code.http_status

    def to_dict(self) -> dict[str, Any]:
        """JSON body: ``{"result": ...}`` or ``{"error": ..., "code": ...}``."""
        if self.code is None:
            return {"result": self.result}
        return {"error": self.error, "code": self.code.value}


class DispatcherConfig(BaseModel):
    """Dispatcher settings.

    Attributes:
        http_method: HTTP method NIP-86 requests arrive with; the NIP-98
            ``method`` tag must match it.
        http_auth: Credential verification settings.
    """

    http_method: str = Field(default="POST", min_length=1, description="Expected HTTP method")
    http_auth: HttpAuthConfig = Field(default_factory=HttpAuthConfig)


class Dispatcher:
    """Authenticates, authorizes, and executes NIP-86 commands.

    Examples:
        ```python
        dispatcher = Dispatcher(store)
        response = await dispatcher.handle(
            relay_id="r1",
            authorization=request.headers.get("Authorization"),
            url="https://api.example.com/api/r1/nip86",
            method=body["method"],
            params=body.get("params"),
        )
        return json_response(response.to_dict(), status=response.http_status)
        ```
    """

    def __init__(
        self,
        store: PolicyStore,
        config: DispatcherConfig | None = None,
        *,
        engine: AuthorizationEngine | None = None,
        acl: AclService | None = None,
    ) -> None:
        self._store = store
        self._config = config or DispatcherConfig()
        self._engine = engine or AuthorizationEngine(store)
        self._acl = acl or AclService(store)
        self._logger = Logger("dispatcher")

    @classmethod
    def from_dict(cls, store: PolicyStore, config_dict: dict[str, Any]) -> Dispatcher:
        """Create a dispatcher from the ``dispatcher`` key of a configuration dictionary."""
        dispatcher_dict = config_dict.get("dispatcher")
        config = DispatcherConfig(**dispatcher_dict) if dispatcher_dict else None
        return cls(store, config)

    @property
    def config(self) -> DispatcherConfig:
        return self._config

    def _reject(
        self, metric_method: str, code: ErrorCode, error: str, **context: Any
    ) -> Nip86Response:
        ADMIN_COMMANDS_TOTAL.labels(method=metric_method, outcome=code.value).inc()
        log = self._logger.error if code is ErrorCode.INTERNAL_ERROR else self._logger.info
        log("command_rejected", method=metric_method, code=code.value, error=error, **context)
        return Nip86Response.failure(code, error)

    async def handle(
        self,
        relay_id: str,
        authorization: str | None,
        url: str,
        method: Any,
        params: Any,
        *,
        http_method: str | None = None,
        now: int | None = None,
    ) -> Nip86Response:
        """Serve one NIP-86 request against *relay_id*.

        Args:
            relay_id: Target relay.
            authorization: Raw ``Authorization`` header, or ``None``.
            url: Absolute URL the request was sent to.
            method: NIP-86 method name.
            params: NIP-86 positional parameters.
            http_method: HTTP method of the request; defaults to
                ``config.http_method``.
            now: Unix time used for the freshness check; defaults to the
                system clock.
        """
        known = isinstance(method, str) and method in COMMAND_REGISTRY
        metric_method = method if known else "unknown"

        if not authorization:
            return self._reject(
                metric_method, ErrorCode.MISSING_CREDENTIAL, "authorization required"
            )

        try:
            pubkey = verify_http_auth(
                authorization,
                url,
                http_method or self._config.http_method,
                now=now,
                config=self._config.http_auth,
            )
        except AuthenticationError as e:
            return self._reject(
                metric_method,
                ErrorCode.INVALID_CREDENTIAL,
                f"invalid credential: {e}",
                reason=e.reason,
            )

        try:
            relay = await self._store.get_relay(relay_id)
            if relay is None:
                return self._reject(
                    metric_method, ErrorCode.RELAY_NOT_FOUND, f"relay not found: {relay_id}"
                )
            await self._engine.require_admin_authority(relay, pubkey)

            command = parse_command(method, params)
            result = await self._acl.execute(relay_id, command)
        except AuthorizationError as e:
            return self._reject(
                metric_method, ErrorCode.FORBIDDEN, str(e), relay_id=relay_id, pubkey=pubkey
            )
        except UnknownMethodError as e:
            return self._reject(metric_method, ErrorCode.UNKNOWN_METHOD, str(e))
        except MissingParamsError as e:
            return self._reject(metric_method, ErrorCode.MISSING_PARAMS, str(e))
        except InvalidInputError as e:
            return self._reject(metric_method, ErrorCode.INVALID_PARAMS, str(e))
        except RelayNotFoundError as e:
            return self._reject(metric_method, ErrorCode.RELAY_NOT_FOUND, str(e))
        except DatabaseError as e:
            return self._reject(
                metric_method, ErrorCode.INTERNAL_ERROR, "internal error", detail=str(e)
            )

        ADMIN_COMMANDS_TOTAL.labels(method=metric_method, outcome="ok").inc()
        self._logger.info(
            "command_executed", method=metric_method, relay_id=relay_id, pubkey=pubkey
        )
        return Nip86Response.success(result)
