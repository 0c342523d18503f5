"""
Connection Session - Per-client subscription state with fault injection.

One session exists per accepted connection. It owns:
- the subscription state (UNSUBSCRIBED / SUBSCRIBED)
- the emission timer that produces temperature readings
- an outbound buffer holding readings held back by a simulated network delay
- an optional forced-disconnect timer that emulates a crashed producer

All mutation happens either in on_message() or in a callback scheduled
through the injected Scheduler, both on the same event loop.
"""

from __future__ import annotations

import random
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Protocol

from .config import FeedConfig
from .jitter import JitterClock
from .logging_utils import get_module_logger
from .messages import (
    AckMessage,
    ErrorMessage,
    OutboundMessage,
    SubscribeRequest,
    TemperatureMessage,
    UnsubscribeRequest,
    ValidationError,
    encode,
    parse_request,
)
from .scheduler import CancellableHandle, LoopScheduler, Scheduler
from .temperature import TemperatureModel

EMISSION_PRECISION = 0.2
FORCED_DISCONNECT_BASE_MS = 200_000
FORCED_DISCONNECT_PRECISION = 0.5


class SubscriptionState(Enum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBED = "subscribed"


class Transport(Protocol):
    def send(self, data: str) -> None: ...

    def close(self) -> None: ...


class ProbabilitySource(Protocol):
    def random(self) -> float: ...


ErrorSink = Callable[["ConnectionSession", str], None]


def _local_now() -> datetime:
    return datetime.now().astimezone()


class ConnectionSession:
    """
    Subscription state machine for a single feed client.

    State transitions:
    - UNSUBSCRIBED -> SUBSCRIBED: valid subscribe request
    - SUBSCRIBED -> UNSUBSCRIBED: valid unsubscribe request (acknowledged)

    Repeated subscribe/unsubscribe requests are no-ops. Invalid requests are
    answered with an error frame and leave the state untouched.

    Probability-gated behaviour (see FeedConfig):
    - delay: a flush is skipped when a draw falls at or below delay_probability
    - drop: an outbound frame is discarded when a draw falls below error_probability
    - forced disconnect: decided once in start() with probability error_probability / 2

    The drop and forced-disconnect draws are independent of each other.
    """

    def __init__(
        self,
        transport: Transport,
        config: FeedConfig,
        name: str,
        on_error: Optional[ErrorSink] = None,
        *,
        scheduler: Optional[Scheduler] = None,
        rng: Optional[ProbabilitySource] = None,
        jitter: Optional[JitterClock] = None,
        temperature: Optional[TemperatureModel] = None,
        clock: Callable[[], datetime] = _local_now,
    ):
        self.name = name
        self.config = config
        self.logger = get_module_logger("ConnectionSession").bind(name)

        self._transport = transport
        self._on_error = on_error
        self._scheduler = scheduler or LoopScheduler()
        self._rng = rng or random.Random()
        self._jitter = jitter or JitterClock()
        self._temperature = temperature or TemperatureModel()
        self._clock = clock

        self._state = SubscriptionState.UNSUBSCRIBED
        self._emission_timer: Optional[CancellableHandle] = None
        self._disconnect_timer: Optional[CancellableHandle] = None
        self._outbound_buffer: List[OutboundMessage] = []
        self._closed = False

    # ------------------------------------------------------------------
    # Introspection

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def subscribed(self) -> bool:
        return self._state is SubscriptionState.SUBSCRIBED

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def outbound_buffer(self) -> List[OutboundMessage]:
        return list(self._outbound_buffer)

    @property
    def has_pending_emission(self) -> bool:
        return self._emission_timer is not None

    @property
    def disconnect_scheduled(self) -> bool:
        return self._disconnect_timer is not None

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        """Log the new connection and roll for a forced disconnect."""
        self.logger.debug("New connection received")

        if not self.config.simulate_failures:
            return

        if self._rng.random() < self.config.error_probability / 2:
            delay_ms = self._jitter.next_interval(
                FORCED_DISCONNECT_BASE_MS, FORCED_DISCONNECT_PRECISION
            )
            self.logger.info("Forcibly disconnecting in %.1fs", delay_ms / 1000.0)
            self._disconnect_timer = self._scheduler.after(delay_ms, self._force_disconnect)

    def stop(self) -> None:
        """Cancel every pending timer. Safe to call more than once."""
        self._closed = True
        self._cancel_emission()
        if self._disconnect_timer is not None:
            self._disconnect_timer.cancel()
            self._disconnect_timer = None

    # ------------------------------------------------------------------
    # Inbound

    def on_message(self, raw) -> None:
        if self._closed:
            self.logger.debug("Ignoring message for closed session")
            return

        try:
            request = parse_request(raw)
        except ValidationError as e:
            self.logger.warning(
                "Rejected message: %s (%s)",
                e.message,
                e.detail or e.kind.value,
            )
            self._send(ErrorMessage(e.message))
            return

        if isinstance(request, SubscribeRequest):
            self._on_subscribe()
        elif isinstance(request, UnsubscribeRequest):
            self._on_unsubscribe()

    def _on_subscribe(self) -> None:
        if self.subscribed:
            self.logger.debug("Already subscribed")
            return

        self.logger.debug("Subscribing to temperature")
        self._state = SubscriptionState.SUBSCRIBED
        self._arm_emission(0)

    def _on_unsubscribe(self) -> None:
        if not self.subscribed:
            return

        self.logger.debug("Unsubscribing from temperature")
        self._cancel_emission()
        self._state = SubscriptionState.UNSUBSCRIBED
        if self._outbound_buffer:
            self.logger.info(
                "Discarding %d delayed message(s) on unsubscribe",
                len(self._outbound_buffer),
            )
            self._outbound_buffer.clear()
        self._send(AckMessage())

    # ------------------------------------------------------------------
    # Emission cycle

    def _arm_emission(self, delay_ms: int) -> None:
        handle: Optional[CancellableHandle] = None

        def fire() -> None:
            if self._emission_timer is not handle:
                return  # stale
            self._emission_timer = None
            self._emit()

        handle = self._scheduler.after(delay_ms, fire)
        self._emission_timer = handle

    def _cancel_emission(self) -> None:
        if self._emission_timer is not None:
            self._emission_timer.cancel()
            self._emission_timer = None

    def _emit(self) -> None:
        if self._closed or not self.subscribed:
            return

        now = self._clock()
        value = self._temperature.value_at(now)
        self._outbound_buffer.append(TemperatureMessage(now, value))
        self._flush()

        if self.subscribed and not self._closed:
            self._arm_emission(
                self._jitter.next_interval(self.config.frequency_ms, EMISSION_PRECISION)
            )

    def _flush(self) -> None:
        if self.config.simulate_delays and self._rng.random() <= self.config.delay_probability:
            self.logger.info(
                "Simulating network delay, %d message(s) held back",
                len(self._outbound_buffer),
            )
            return

        pending, self._outbound_buffer = self._outbound_buffer, []
        for message in pending:
            self._send(message)

    # ------------------------------------------------------------------
    # Outbound

    def _send(self, message: OutboundMessage) -> None:
        if self.config.simulate_failures and self._rng.random() < self.config.error_probability:
            self.logger.info("Simulated failure, dropping %s", type(message).__name__)
            return
        self._transport.send(encode(message))

    def _force_disconnect(self) -> None:
        self._disconnect_timer = None
        if self._closed:
            return

        reason = "Simulated upstream failure"
        self.logger.warning("Forcing disconnect: %s", reason)
        self._transport.close()
        self.stop()
        if self._on_error is not None:
            self._on_error(self, reason)
