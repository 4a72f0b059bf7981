"""Delivery state machine -- direct attempt, at most one relay retry, terminal state.

The machine is a pure reducer over an immutable :class:`DeliveryState`.
:class:`MediaDelivery` holds the current state for one rendered media
instance and feeds lifecycle events through the reducer.

Transitions::

    unresolved --start--> loading_direct --success--> ready
                                         --error----> loading_relay   (route exists, no relay yet)
                                         --error----> failed          (no route)
    unresolved --start--> loading_relay               (no direct option / relay preferred)
    unresolved --start--> failed                      (invalid transport)
    loading_relay --success--> ready
    loading_relay --error----> failed

``ready`` and ``failed`` absorb every later event.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Union

from .errors import FailureReason, TransportError, TransportErrorKind, reason_text
from .kinds import TransportClass
from .relay import ROUTES, ProxyRoute, relay_url_for
from .transport import Resolution

if TYPE_CHECKING:
    from .memo import RelayMemo

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


class Phase(enum.Enum):
    unresolved = "unresolved"
    loading_direct = "loading-direct"
    loading_relay = "loading-relay"
    ready = "ready"
    failed = "failed"


class Origin(enum.Enum):
    direct = "direct"
    relay = "relay"


class Outcome(enum.Enum):
    pending = "pending"
    success = "success"
    error = "error"


class Status(enum.Enum):
    """User-facing status shown by the rendering surface."""

    loading = "loading"
    ready = "ready"
    error_retry_hint = "error-with-retry-hint"
    error_final = "error-final"


_TERMINAL = frozenset({Phase.ready, Phase.failed})


@dataclass(frozen=True)
class DeliveryAttempt:
    url: str
    origin: Origin
    timestamp: float
    outcome: Outcome = Outcome.pending
    error: TransportError | None = None


@dataclass(frozen=True)
class DeliveryState:
    resolution: Resolution
    instance: str | None = None
    prefer_relay: bool = False
    phase: Phase = Phase.unresolved
    attempts: tuple[DeliveryAttempt, ...] = ()
    target_url: str | None = None
    status: Status = Status.loading
    failure: FailureReason | None = None

    @property
    def terminal(self) -> bool:
        return self.phase in _TERMINAL

    @property
    def relay_attempts(self) -> int:
        return sum(1 for a in self.attempts if a.origin is Origin.relay)

    @property
    def current_attempt(self) -> DeliveryAttempt | None:
        return self.attempts[-1] if self.attempts else None

    @property
    def reason(self) -> str:
        """Short user-facing reason for a failure, ``""`` otherwise."""
        return reason_text(self.failure) if self.failure else ""


# -- events -----------------------------------------------------------------


@dataclass(frozen=True)
class Start:
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class Success:
    url: str | None = None
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class Error:
    error: TransportError = TransportError(TransportErrorKind.network)
    url: str | None = None
    at: float = field(default_factory=time.time)


LoadEvent = Union[Start, Success, Error]


# -- reducer ----------------------------------------------------------------


def initial_state(
    resolution: Resolution,
    *,
    instance: str | None = None,
    prefer_relay: bool = False,
) -> DeliveryState:
    return DeliveryState(resolution=resolution, instance=instance, prefer_relay=prefer_relay)


def reduce(
    state: DeliveryState,
    event: LoadEvent,
    *,
    routes: Mapping[TransportClass, ProxyRoute] = ROUTES,
) -> DeliveryState:
    """Apply *event* to *state*.  Returns *state* itself when the event is ignored."""
    if state.terminal:
        return state

    if isinstance(event, Start):
        if state.phase is not Phase.unresolved:
            return state
        return _start(state, event.at, routes)

    if state.phase is Phase.unresolved:
        return state
    # An event naming another URL belongs to an attempt that is already over.
    if event.url is not None and event.url != state.target_url:
        return state

    if isinstance(event, Success):
        return replace(
            state,
            phase=Phase.ready,
            attempts=_settle(state.attempts, Outcome.success),
            status=Status.ready,
        )

    attempts = _settle(state.attempts, Outcome.error, event.error)
    if state.phase is Phase.loading_direct and state.relay_attempts == 0:
        relay = relay_url_for(
            state.resolution, _millis(event.at), instance=state.instance, routes=routes,
        )
        if relay is not None:
            return _begin(replace(state, attempts=attempts), Phase.loading_relay, Origin.relay, relay, event.at)
        return _fail(replace(state, attempts=attempts), FailureReason.direct_failed)
    return _fail(replace(state, attempts=attempts), FailureReason.relay_failed)


def _start(state: DeliveryState, at: float, routes: Mapping[TransportClass, ProxyRoute]) -> DeliveryState:
    resolution = state.resolution
    if not resolution.valid:
        return _fail(state, FailureReason.transport_invalid)

    if resolution.has_direct and not (state.prefer_relay and resolution.transport in routes):
        return _begin(state, Phase.loading_direct, Origin.direct, resolution.normalized, at)

    relay = relay_url_for(resolution, _millis(at), instance=state.instance, routes=routes)
    if relay is None:
        return _fail(state, FailureReason.transport_invalid)
    return _begin(state, Phase.loading_relay, Origin.relay, relay, at)


def _begin(state: DeliveryState, phase: Phase, origin: Origin, url: str, at: float) -> DeliveryState:
    if len(state.attempts) >= MAX_ATTEMPTS:
        return _fail(state, FailureReason.relay_failed)
    attempt = DeliveryAttempt(url=url, origin=origin, timestamp=at)
    return replace(
        state,
        phase=phase,
        attempts=state.attempts + (attempt,),
        target_url=url,
        status=Status.loading,
    )


def _fail(state: DeliveryState, reason: FailureReason) -> DeliveryState:
    status = Status.error_final if reason is FailureReason.transport_invalid else Status.error_retry_hint
    return replace(state, phase=Phase.failed, status=status, failure=reason, target_url=None)


def _settle(
    attempts: tuple[DeliveryAttempt, ...],
    outcome: Outcome,
    error: TransportError | None = None,
) -> tuple[DeliveryAttempt, ...]:
    if not attempts:
        return attempts
    return attempts[:-1] + (replace(attempts[-1], outcome=outcome, error=error),)


def _millis(at: float) -> int:
    return int(at * 1000)


# -- per-instance holder ----------------------------------------------------


class MediaDelivery:
    """Current delivery state of one rendered media instance.

    Not shared between instances.  After :meth:`discard` every event is
    ignored, which is how an unmounted message abandons in-flight loads.
    """

    def __init__(
        self,
        resolution: Resolution,
        *,
        instance: str | None = None,
        routes: Mapping[TransportClass, ProxyRoute] = ROUTES,
        memo: RelayMemo | None = None,
        listener: Callable[[DeliveryState], None] | None = None,
        label: str = "",
    ) -> None:
        self._routes = routes
        self._memo = memo
        self._listener = listener
        self._label = label or resolution.transport.value
        self._discarded = False
        prefer_relay = bool(
            memo is not None and resolution.normalized and memo.prefers_relay(resolution.normalized)
        )
        self._state = initial_state(resolution, instance=instance, prefer_relay=prefer_relay)

    @property
    def state(self) -> DeliveryState:
        return self._state

    @property
    def discarded(self) -> bool:
        return self._discarded

    def dispatch(self, event: LoadEvent) -> DeliveryState:
        if self._discarded:
            logger.debug("[delivery] %s: ignoring %s after discard", self._label, type(event).__name__)
            return self._state

        before = self._state
        after = reduce(before, event, routes=self._routes)
        if after is before:
            logger.debug(
                "[delivery] %s: %s ignored in %s", self._label, type(event).__name__, before.phase.value,
            )
            return before

        self._state = after
        logger.info(
            "[delivery] %s: %s -> %s (%s)",
            self._label, before.phase.value, after.phase.value, after.status.value,
        )
        if after.terminal:
            self._remember(after)
        if self._listener is not None:
            self._listener(after)
        return after

    def start(self) -> DeliveryState:
        return self.dispatch(Start())

    def succeed(self, url: str | None = None) -> DeliveryState:
        return self.dispatch(Success(url=url))

    def fail(self, error: TransportError, url: str | None = None) -> DeliveryState:
        return self.dispatch(Error(error=error, url=url))

    def discard(self) -> None:
        self._discarded = True
        self._listener = None

    def _remember(self, state: DeliveryState) -> None:
        attempt = state.current_attempt
        normalized = state.resolution.normalized
        if self._memo is None or attempt is None or not normalized:
            return
        if state.phase is Phase.failed:
            if state.prefer_relay:
                self._memo.forget(normalized)
        elif attempt.origin is Origin.relay:
            self._memo.remember(normalized)
