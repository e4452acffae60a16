"""
Execution Channel
Per-session command pipeline on top of the shared ConnectionManager.

Commands are queued FIFO and written only while the connection is OPEN;
anything queued during CONNECTING is sent exactly once after the
connection opens. Every command carries its own correlation id and timeout.
"""

import asyncio
import posixpath
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional

from appforge.core.config import settings
from appforge.core.exceptions import (
    AppForgeError,
    CommandFailedError,
    ConnectionFailedError,
    FileWriteFailedError,
    TransportClosedError,
)
from appforge.core.logging_config import logger
from appforge.modules.execution.connection import ConnectionManager
from appforge.modules.execution.local_fallback import ArchiveArtifact, LocalMaterializer
from appforge.modules.execution.protocol import (
    CommandResponse,
    ErrorCode,
    command_envelope,
    ensure_directory_command,
    new_correlation_id,
    write_file_command,
)
from appforge.modules.execution.transport import Transport
from appforge.schemas.session import OrganizedFileSet, ScaffoldSession, new_session_id


@dataclass
class QueuedCommand:
    command: str
    correlation_id: str
    future: asyncio.Future
    timeout: float
    send_attempts: int = 0


@dataclass
class FileWriteResult:
    written_paths: List[str] = field(default_factory=list)
    failed_paths: List[str] = field(default_factory=list)
    pending_paths: List[str] = field(default_factory=list)
    responses: List[CommandResponse] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_paths and not self.pending_paths

    @property
    def connection_failed(self) -> bool:
        return any(r.is_connection_failure for r in self.responses)

    def raise_for_status(self) -> "FileWriteResult":
        if not self.ok:
            raise FileWriteFailedError(self.failed_paths, self.pending_paths)
        return self


class ExecutionChannel:
    """
    One channel per scaffold session.

    Usage:
        async with ExecutionChannel(manager, session_id=session.session_id) as channel:
            responses = await channel.execute_commands(plan)
            result = await channel.create_files(session.files)
    """

    def __init__(
        self,
        manager: ConnectionManager,
        session_id: Optional[str] = None,
        command_timeout: Optional[float] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        command_delay: Optional[float] = None,
        materializer: Optional[LocalMaterializer] = None,
    ):
        self.manager = manager
        self.session_id = session_id or new_session_id()
        self.command_timeout = settings.COMMAND_TIMEOUT if command_timeout is None else command_timeout
        self.batch_size = max(1, batch_size or settings.FILE_BATCH_SIZE)
        self.batch_delay = settings.BATCH_DELAY if batch_delay is None else batch_delay
        self.command_delay = settings.COMMAND_DELAY if command_delay is None else command_delay
        self.materializer = materializer or LocalMaterializer()

        self._queue: Deque[QueuedCommand] = deque()
        self._drain_task: Optional[asyncio.Task] = None
        self._acquired = False
        self._cancelled = False

    async def __aenter__(self) -> "ExecutionChannel":
        self._acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def state(self):
        return self.manager.state

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _acquire(self) -> None:
        if not self._acquired:
            self.manager.acquire()
            self._acquired = True

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def connect(self) -> Transport:
        """
        Open (or reuse) the shared connection.

        Raises:
            ConnectionFailedError: no connection after exhausting retries
        """
        self._acquire()
        return await self.manager.connect()

    async def close(self) -> None:
        if self._queue:
            self._fail_queued(TransportClosedError("Channel closed"))
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
        if self._acquired:
            self._acquired = False
            await self.manager.release()

    def cancel(self) -> None:
        """
        Stop issuing queued commands. Commands already written keep running
        and resolve normally or by timeout.
        """
        self._cancelled = True
        dropped = 0
        while self._queue:
            item = self._queue.popleft()
            error = CommandFailedError(item.command, "Session cancelled", code=ErrorCode.SESSION_CANCELLED)
            if not item.future.done():
                item.future.set_result(CommandResponse.from_error(item.correlation_id, item.command, error))
            dropped += 1
        logger.info(f"[ExecutionChannel] Session {self.session_id} cancelled, dropped {dropped} queued command(s)")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def send(self, command: str, timeout: Optional[float] = None) -> "asyncio.Future[CommandResponse]":
        """Queue a command; the returned future resolves with its CommandResponse"""
        future = asyncio.get_running_loop().create_future()
        correlation_id = new_correlation_id()

        if self._cancelled:
            error = CommandFailedError(command, "Session cancelled", code=ErrorCode.SESSION_CANCELLED)
            future.set_result(CommandResponse.from_error(correlation_id, command, error))
            return future

        self._acquire()
        self._queue.append(QueuedCommand(
            command=command,
            correlation_id=correlation_id,
            future=future,
            timeout=self.command_timeout if timeout is None else timeout,
        ))
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.create_task(self._drain())
        return future

    async def send_and_await(self, command: str, timeout: Optional[float] = None) -> CommandResponse:
        return await self.send(command, timeout)

    async def execute_commands(self, commands: List[str], delay: Optional[float] = None) -> List[CommandResponse]:
        """Run commands one at a time, stopping at the first failure"""
        delay = self.command_delay if delay is None else delay
        responses: List[CommandResponse] = []

        for index, command in enumerate(commands):
            if self._cancelled:
                break
            response = await self.send_and_await(command)
            responses.append(response)
            if not response.success:
                logger.warning(
                    f"[ExecutionChannel] Command {index + 1}/{len(commands)} failed "
                    f"({response.error_code}), stopping sequence"
                )
                break
            if delay and index < len(commands) - 1:
                await asyncio.sleep(delay)

        return responses

    async def _drain(self) -> None:
        max_send_attempts = 1 + self.manager.max_retries

        while self._queue:
            try:
                await self.manager.ensure_open()
            except ConnectionFailedError as e:
                self._fail_queued(e)
                return

            if not self._queue:
                return
            item = self._queue[0]
            if item.future.done():
                self._queue.popleft()
                continue

            item.send_attempts += 1
            envelope = command_envelope(item.command, self.session_id, item.correlation_id)
            try:
                await self.manager.submit(envelope, item.correlation_id, item.command, item.future, item.timeout)
            except TransportClosedError as e:
                if item.send_attempts >= max_send_attempts:
                    self._queue.popleft()
                    if not item.future.done():
                        item.future.set_result(CommandResponse.from_error(item.correlation_id, item.command, e))
                else:
                    logger.debug(f"[ExecutionChannel] Send failed ({e.message}), retrying after reconnect")
                continue

            # A concurrent cancel() may already have removed the head
            if self._queue and self._queue[0] is item:
                self._queue.popleft()

    def _fail_queued(self, error: AppForgeError) -> None:
        while self._queue:
            item = self._queue.popleft()
            if not item.future.done():
                item.future.set_result(CommandResponse.from_error(item.correlation_id, item.command, error))

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def create_file(self, path: str, content: str) -> CommandResponse:
        """Ensure the parent directory exists, then write shell-escaped content"""
        directory = posixpath.dirname(path)
        if directory:
            response = await self.send_and_await(ensure_directory_command(directory))
            if not response.success:
                return response
        return await self.send_and_await(write_file_command(path, content))

    async def create_files(self, files: OrganizedFileSet) -> FileWriteResult:
        """
        Write files in fixed-size batches: concurrent within a batch,
        sequential across batches, stopping after the first failing batch.
        """
        items = list(files.items())
        batches = [items[i:i + self.batch_size] for i in range(0, len(items), self.batch_size)]
        result = FileWriteResult()

        for index, batch in enumerate(batches):
            if self._cancelled:
                result.pending_paths.extend(path for b in batches[index:] for path, _ in b)
                break

            responses = await asyncio.gather(*(self.create_file(path, content) for path, content in batch))
            for (path, _), response in zip(batch, responses):
                result.responses.append(response)
                if response.success:
                    result.written_paths.append(path)
                else:
                    result.failed_paths.append(path)

            if result.failed_paths:
                result.pending_paths.extend(path for b in batches[index + 1:] for path, _ in b)
                logger.warning(
                    f"[ExecutionChannel] Batch {index + 1}/{len(batches)} failed for "
                    f"{len(result.failed_paths)} file(s), {len(result.pending_paths)} not attempted"
                )
                break

            if self.batch_delay and index < len(batches) - 1:
                await asyncio.sleep(self.batch_delay)

        logger.info(
            f"[ExecutionChannel] Wrote {len(result.written_paths)}/{len(items)} file(s) "
            f"for session {self.session_id}"
        )
        return result

    async def materialize_locally(self, session: ScaffoldSession) -> ArchiveArtifact:
        """Package the session as an archive instead of scaffolding it live"""
        return await self.materializer.materialize(session)
