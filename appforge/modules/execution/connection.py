"""
Connection Manager
Owns the single shared connection to the execution endpoint.

State machine:
    DISCONNECTED -> CONNECTING -> OPEN -> CLOSING -> DISCONNECTED
                        |           |
                        +-----------+--> DISCONNECTED (failure / unexpected close)

Responsibilities:
- connect() is idempotent; a new attempt while CONNECTING supersedes the stale one
- correlation registry: correlation id -> pending future, so overlapping
  sessions can share one transport without "last response wins" matching
- reader task dispatching commandResponse by id and everything else to listeners
- reconnection with exponential backoff + jitter, bounded retry count
- per-command timeout starting when the command is written
"""

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from appforge.core.config import settings
from appforge.core.exceptions import (
    AppForgeError,
    CommandTimeoutError,
    ConnectionFailedError,
    InvalidStateTransitionError,
    TransportClosedError,
)
from appforge.core.logging_config import logger
from appforge.modules.execution.protocol import (
    CommandResponse,
    ErrorCode,
    InboundMessage,
    MessageType,
    encode,
    key_envelope,
    parse_message,
    paste_envelope,
    resize_envelope,
    sigint_envelope,
)
from appforge.modules.execution.transport import Transport, TransportFactory, connect_websocket


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


VALID_TRANSITIONS: Dict[ConnectionState, Set[ConnectionState]] = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.OPEN, ConnectionState.DISCONNECTED},
    ConnectionState.OPEN: {ConnectionState.CLOSING, ConnectionState.DISCONNECTED},
    ConnectionState.CLOSING: {ConnectionState.DISCONNECTED},
}

MessageListener = Callable[[InboundMessage], None]


@dataclass
class PendingCommand:
    correlation_id: str
    command: str
    future: asyncio.Future
    timeout: float
    timer: Optional[asyncio.TimerHandle] = None

    def resolve(self, response: CommandResponse) -> None:
        if self.timer is not None:
            self.timer.cancel()
        if not self.future.done():
            self.future.set_result(response)


def _consume_exception(future: asyncio.Future) -> None:
    # Nobody may be awaiting a failed attempt; mark the exception retrieved
    if not future.cancelled():
        future.exception()


class ConnectionManager:
    """Shared connection to the terminal server; inject one per process"""

    def __init__(
        self,
        url: Optional[str] = None,
        transport_factory: Optional[TransportFactory] = None,
        connect_timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
    ):
        self.url = url or settings.TERMINAL_WS_URL
        self._factory: TransportFactory = transport_factory or connect_websocket
        self.connect_timeout = settings.CONNECT_TIMEOUT if connect_timeout is None else connect_timeout
        self.max_retries = settings.MAX_RECONNECT_ATTEMPTS if max_retries is None else max_retries
        self.base_delay = settings.RECONNECT_BASE_DELAY if base_delay is None else base_delay
        self.max_delay = settings.RECONNECT_MAX_DELAY if max_delay is None else max_delay

        self._state = ConnectionState.DISCONNECTED
        self._transport: Optional[Transport] = None
        self._ready: Optional[asyncio.Future] = None
        self._connector_task: Optional[asyncio.Task] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._generation = 0
        self._disconnected = asyncio.Event()
        self._disconnected.set()

        self._pending: Dict[str, PendingCommand] = {}
        self._listeners: List[MessageListener] = []
        self._users = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN and self._transport is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _transition(self, new_state: ConnectionState) -> None:
        if new_state not in VALID_TRANSITIONS[self._state]:
            raise InvalidStateTransitionError(self._state.value, new_state.value)
        logger.debug(f"[ConnectionManager] {self._state.value} -> {new_state.value}")
        self._state = new_state
        if new_state == ConnectionState.DISCONNECTED:
            self._disconnected.set()
        else:
            self._disconnected.clear()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def acquire(self) -> None:
        self._users += 1

    async def release(self) -> None:
        """Drop one user; the connection closes once nobody uses it"""
        self._users = max(0, self._users - 1)
        if self._users == 0:
            await self.close()

    def add_listener(self, listener: MessageListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: MessageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Connect / close
    # ------------------------------------------------------------------

    async def connect(self) -> Transport:
        """
        Return the open transport, establishing one if needed.

        A call made while another attempt is CONNECTING cancels that attempt
        and starts a fresh one; every caller waits on the same result.

        Raises:
            ConnectionFailedError: retries exhausted
        """
        if self.is_open:
            return self._transport
        if self._state == ConnectionState.CLOSING:
            await self._disconnected.wait()
        ready = self._start_attempt()
        return await asyncio.shield(ready)

    async def ensure_open(self) -> Transport:
        """Like connect() but joins an attempt already in progress"""
        if self.is_open:
            return self._transport
        if self._state == ConnectionState.CONNECTING and self._ready is not None and not self._ready.done():
            return await asyncio.shield(self._ready)
        return await self.connect()

    def _start_attempt(self) -> asyncio.Future:
        if self._connector_task is not None and not self._connector_task.done():
            logger.info(f"[ConnectionManager] Superseding in-flight connection attempt to {self.url}")
            self._connector_task.cancel()

        if self._ready is None or self._ready.done():
            self._ready = asyncio.get_running_loop().create_future()
            self._ready.add_done_callback(_consume_exception)

        if self._state == ConnectionState.DISCONNECTED:
            self._transition(ConnectionState.CONNECTING)

        self._generation += 1
        self._connector_task = asyncio.create_task(
            self._connect_with_retry(self._generation, self._ready)
        )
        return self._ready

    def backoff_delay(self, retry: int) -> float:
        """Delay before retry number `retry` (1-based), with 0-25% jitter"""
        delay = min(self.base_delay * (2 ** (retry - 1)), self.max_delay)
        jitter = delay * random.uniform(0, 0.25)
        return delay + jitter

    async def _connect_with_retry(self, generation: int, ready: asyncio.Future) -> None:
        total_attempts = 1 + self.max_retries
        last_error: Optional[BaseException] = None

        for attempt in range(1, total_attempts + 1):
            if attempt > 1:
                await asyncio.sleep(self.backoff_delay(attempt - 1))

            logger.log_connection_event("attempt", self.url, attempt=attempt)
            try:
                transport = await asyncio.wait_for(self._factory(self.url), timeout=self.connect_timeout)
            except asyncio.TimeoutError as e:
                last_error = e
                logger.warning(f"[ConnectionManager] Connect attempt {attempt}/{total_attempts} timed out")
                continue
            except Exception as e:
                last_error = e
                logger.warning(f"[ConnectionManager] Connect attempt {attempt}/{total_attempts} failed: {e}")
                continue

            if generation != self._generation:
                await transport.close()
                return

            self._transport = transport
            self._transition(ConnectionState.OPEN)
            self._reader_task = asyncio.create_task(self._read_loop(transport, generation))
            logger.log_connection_event("open", self.url, attempt=attempt)
            if not ready.done():
                ready.set_result(transport)
            return

        if generation != self._generation:
            return

        reason = str(last_error) if last_error and str(last_error) else type(last_error).__name__
        error = ConnectionFailedError(self.url, attempts=total_attempts, reason=reason)
        logger.log_connection_event("failed", self.url, attempt=total_attempts)
        self._transition(ConnectionState.DISCONNECTED)
        self._fail_all_pending(error)
        if not ready.done():
            ready.set_exception(error)

    async def close(self) -> None:
        """Close the connection; commands still awaiting a response fail with DISCONNECTED"""
        if self._state == ConnectionState.DISCONNECTED:
            return

        self._generation += 1
        if self._connector_task is not None and not self._connector_task.done():
            self._connector_task.cancel()

        if self._state == ConnectionState.CONNECTING:
            self._transition(ConnectionState.DISCONNECTED)
            if self._ready is not None and not self._ready.done():
                self._ready.set_exception(
                    ConnectionFailedError(self.url, reason="closed before the connection opened")
                )
            self._fail_all_pending(TransportClosedError("Connection closed"))
            return

        if self._state == ConnectionState.CLOSING:
            await self._disconnected.wait()
            return

        self._transition(ConnectionState.CLOSING)
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()

        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                await transport.close()
            except Exception as e:
                logger.debug(f"[ConnectionManager] Error while closing transport: {e}")

        self._fail_all_pending(TransportClosedError("Connection closed"))
        self._transition(ConnectionState.DISCONNECTED)
        logger.log_connection_event("closed", self.url)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def submit(
        self,
        envelope: dict,
        correlation_id: str,
        command: str,
        future: asyncio.Future,
        timeout: float
    ) -> None:
        """
        Register a pending command and write it to the transport.

        The timeout starts once the frame is written. The future always
        resolves with a CommandResponse (never an exception).

        Raises:
            TransportClosedError: the connection is not open or the write failed;
                nothing stays registered in that case
        """
        transport = self._transport
        if not self.is_open or transport is None:
            raise TransportClosedError("Connection is not open")

        pending = PendingCommand(correlation_id, command, future, timeout)
        self._pending[correlation_id] = pending
        try:
            await transport.send(encode(envelope))
        except TransportClosedError:
            self._pending.pop(correlation_id, None)
            raise
        except asyncio.CancelledError:
            self._pending.pop(correlation_id, None)
            raise
        except Exception as e:
            self._pending.pop(correlation_id, None)
            raise TransportClosedError(f"Send failed: {e}") from e

        # The response may already have arrived while we were writing
        if correlation_id in self._pending:
            pending.timer = asyncio.get_running_loop().call_later(timeout, self._expire, correlation_id)

    def _expire(self, correlation_id: str) -> None:
        pending = self._pending.pop(correlation_id, None)
        if pending is None:
            return
        error = CommandTimeoutError(pending.command, pending.timeout)
        logger.log_command(pending.command, correlation_id, success=False, error_code=error.code)
        pending.resolve(CommandResponse.from_error(correlation_id, pending.command, error))

    def _fail_all_pending(self, error: AppForgeError) -> None:
        pending, self._pending = self._pending, {}
        for item in pending.values():
            item.resolve(CommandResponse.from_error(item.correlation_id, item.command, error))
        if pending:
            logger.warning(f"[ConnectionManager] Failed {len(pending)} pending command(s): {error.code}")

    async def send_envelope(self, envelope: dict) -> None:
        """Send a raw terminal envelope (resize, key, paste, SIGINT)"""
        transport = await self.ensure_open()
        await transport.send(encode(envelope))

    async def send_resize(self, rows: int, cols: int) -> None:
        await self.send_envelope(resize_envelope(rows, cols))

    async def send_key(self, key: str) -> None:
        await self.send_envelope(key_envelope(key))

    async def send_paste(self, data: str) -> None:
        await self.send_envelope(paste_envelope(data))

    async def send_sigint(self) -> None:
        await self.send_envelope(sigint_envelope())

    # ------------------------------------------------------------------
    # Reader
    # ------------------------------------------------------------------

    async def _read_loop(self, transport: Transport, generation: int) -> None:
        reason = "connection closed"
        try:
            while True:
                raw = await transport.recv()
                self._dispatch(parse_message(raw))
        except asyncio.CancelledError:
            raise
        except TransportClosedError as e:
            reason = e.message
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            logger.warning(f"[ConnectionManager] Reader stopped: {reason}")

        if generation == self._generation and self._state == ConnectionState.OPEN:
            self._handle_unexpected_close(reason)

    def _handle_unexpected_close(self, reason: str) -> None:
        logger.log_connection_event("lost", self.url, reason=reason)
        self._transport = None
        self._transition(ConnectionState.DISCONNECTED)

        # Commands already written keep their timers; a successful reconnect
        # cannot answer them, a failed one fails them with CONNECTION_FAILED.
        if self._users > 0 or self._pending:
            self._start_attempt()

    def _dispatch(self, message: InboundMessage) -> None:
        if message.type == MessageType.COMMAND_RESPONSE.value:
            correlation_id = str(message.payload.get("id") or "")
            pending = self._pending.pop(correlation_id, None)
            if pending is None:
                logger.debug(f"[ConnectionManager] Response for unknown command id '{correlation_id}'")
                return

            success = bool(message.payload.get("success", True))
            output = message.payload.get("output")
            response = CommandResponse(
                correlation_id=correlation_id,
                output=output if isinstance(output, str) else ("" if output is None else str(output)),
                success=success,
                error_code=None if success else ErrorCode.COMMAND_FAILED,
                command=pending.command,
            )
            logger.log_command(pending.command, correlation_id, success=success, error_code=response.error_code)
            pending.resolve(response)
            return

        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception as e:
                logger.warning(f"[ConnectionManager] Listener error for '{message.type}' message: {e}")
