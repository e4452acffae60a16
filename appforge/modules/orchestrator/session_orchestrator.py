"""
Session Orchestrator
Drives one scaffold session end to end:

    response -> config -> raw files -> organized files -> ScaffoldSession
             -> live scaffold (pipelined, then sequential)
             -> archive fallback when the endpoint is unreachable or both strategies fail

User-visible outcome is always one of: LIVE success, ARCHIVED success, or a
single FAILED result with a failure notice.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from appforge.core.exceptions import AppForgeError, ArchiveFailedError, ConnectionFailedError
from appforge.core.logging_config import get_session_id, logger, set_session_id
from appforge.modules.execution.channel import ExecutionChannel
from appforge.modules.execution.connection import ConnectionManager
from appforge.modules.execution.local_fallback import LocalMaterializer
from appforge.modules.execution.protocol import CommandResponse, ErrorCode
from appforge.modules.extraction.config_parser import ConfigParser, config_parser
from appforge.modules.extraction.file_extractor import FileExtractor, file_extractor
from appforge.modules.extraction.response_splitter import ResponseSplitter, response_splitter
from appforge.modules.layout.classifier import LayoutClassifier, layout_classifier
from appforge.modules.planning.command_planner import CommandPlanner, command_planner
from appforge.schemas.project import ProjectConfiguration, slugify_project_name
from appforge.schemas.session import (
    GenerationResult,
    MaterializationResult,
    MaterializationStatus,
    ProjectCreationNotice,
    ScaffoldSession,
)


NoticeListener = Callable[[ProjectCreationNotice], None]


@dataclass
class StrategyOutcome:
    name: str
    success: bool
    responses: List[CommandResponse] = field(default_factory=list)
    connection_failed: bool = False
    cancelled: bool = False

    @property
    def first_failure(self) -> Optional[CommandResponse]:
        return next((r for r in self.responses if not r.success), None)


class SessionOrchestrator:
    """Coordinates extraction, layout, planning and execution for scaffold sessions"""

    def __init__(
        self,
        manager: Optional[ConnectionManager] = None,
        materializer: Optional[LocalMaterializer] = None,
        extractor: Optional[FileExtractor] = None,
        classifier: Optional[LayoutClassifier] = None,
        planner: Optional[CommandPlanner] = None,
        splitter: Optional[ResponseSplitter] = None,
        parser: Optional[ConfigParser] = None,
        channel_options: Optional[Dict[str, Any]] = None,
    ):
        self.manager = manager or ConnectionManager()
        self.materializer = materializer or LocalMaterializer()
        self.extractor = extractor or file_extractor
        self.classifier = classifier or layout_classifier
        self.planner = planner or command_planner
        self.splitter = splitter or response_splitter
        self.parser = parser or config_parser
        self.channel_options = dict(channel_options or {})

        self._listeners: List[NoticeListener] = []
        self._channels: Dict[str, ExecutionChannel] = {}
        self.materializer.add_listener(self._notify)

    def add_listener(self, listener: NoticeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: NoticeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, notice: ProjectCreationNotice) -> None:
        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception as e:
                logger.warning(f"[SessionOrchestrator] Notice listener failed: {e}")

    # ------------------------------------------------------------------
    # Preparation (pure)
    # ------------------------------------------------------------------

    def prepare(
        self,
        response: Union[GenerationResult, str],
        name: Optional[str] = None
    ) -> ScaffoldSession:
        """
        Turn a generation result into a ScaffoldSession.

        A pre-parsed config on the response bypasses inference entirely.
        """
        if isinstance(response, str):
            response = self.splitter.split(response)

        config = response.config
        if config is None:
            source = "\n\n".join(part for part in (response.text, response.code) if part)
            config = self.parser.extract_config(source)
        if name:
            config = config.model_copy(update={"name": slugify_project_name(name)})

        raw_files = self.extractor.extract(response.code or response.text, prose=response.text or None)
        organized = self.classifier.organize(raw_files, config)
        session = ScaffoldSession.create(config, organized)

        logger.info(
            f"[SessionOrchestrator] Prepared session {session.session_id}: {config.type}/{config.language} "
            f"project '{config.name}' with {len(organized)} file(s)"
        )
        return session

    def plan(self, config: ProjectConfiguration) -> List[str]:
        return self.planner.plan(config)

    # ------------------------------------------------------------------
    # Materialization
    # ------------------------------------------------------------------

    async def create_project(
        self,
        response: Union[GenerationResult, str],
        name: Optional[str] = None
    ) -> MaterializationResult:
        return await self.materialize(self.prepare(response, name=name))

    def cancel(self, session_id: str) -> bool:
        """Cooperatively cancel a running session; returns False if it is not running"""
        channel = self._channels.get(session_id)
        if channel is None:
            return False
        channel.cancel()
        return True

    async def materialize(self, session: ScaffoldSession) -> MaterializationResult:
        previous_session_id = get_session_id()
        set_session_id(session.session_id)
        channel = ExecutionChannel(
            self.manager,
            session_id=session.session_id,
            materializer=self.materializer,
            **self.channel_options
        )
        self._channels[session.session_id] = channel
        try:
            async with channel:
                return await self._materialize(channel, session)
        finally:
            self._channels.pop(session.session_id, None)
            set_session_id(previous_session_id)

    async def _materialize(self, channel: ExecutionChannel, session: ScaffoldSession) -> MaterializationResult:
        plan = self.planner.plan(session.config)
        responses: List[CommandResponse] = []
        reason: Optional[AppForgeError] = None

        try:
            await channel.connect()
        except ConnectionFailedError as e:
            logger.warning(f"[SessionOrchestrator] {e.message}, falling back to archive")
            return await self._fallback(channel, session, responses, e)

        for strategy in (self._run_pipelined, self._run_sequential):
            outcome = await strategy(channel, session, plan)
            responses.extend(outcome.responses)

            if outcome.success:
                logger.info(f"[SessionOrchestrator] Project '{session.project_name}' scaffolded ({outcome.name})")
                self._notify(ProjectCreationNotice(
                    success=True,
                    message=f"Project '{session.project_name}' created",
                    project_name=session.project_name,
                ))
                return MaterializationResult(
                    status=MaterializationStatus.LIVE,
                    session_id=session.session_id,
                    project_name=session.project_name,
                    responses=responses,
                )

            if outcome.cancelled:
                return self._cancelled_result(session, responses)

            failure = outcome.first_failure
            reason = failure.as_error() if failure is not None else None
            logger.warning(
                f"[SessionOrchestrator] {outcome.name} strategy failed"
                + (f" ({failure.error_code})" if failure else "")
            )
            if outcome.connection_failed:
                break

        return await self._fallback(channel, session, responses, reason)

    async def _run_pipelined(self, channel: ExecutionChannel, session: ScaffoldSession, plan: List[str]) -> StrategyOutcome:
        """Enqueue the whole plan at once, then write files"""
        futures = [channel.send(command) for command in plan]
        responses = list(await asyncio.gather(*futures))
        outcome = self._outcome("pipelined", responses)
        if not outcome.success:
            return outcome
        return await self._write_files(channel, session, outcome)

    async def _run_sequential(self, channel: ExecutionChannel, session: ScaffoldSession, plan: List[str]) -> StrategyOutcome:
        """One awaited command at a time; safe to repeat because the plan is idempotent"""
        responses = await channel.execute_commands(plan)
        outcome = self._outcome("sequential", responses)
        if outcome.success and len(responses) < len(plan):
            outcome.success = False
        if not outcome.success:
            return outcome
        return await self._write_files(channel, session, outcome)

    async def _write_files(self, channel: ExecutionChannel, session: ScaffoldSession, outcome: StrategyOutcome) -> StrategyOutcome:
        result = await channel.create_files(session.files)
        written = self._outcome(outcome.name, outcome.responses + result.responses)
        written.success = result.ok
        return written

    @staticmethod
    def _outcome(name: str, responses: List[CommandResponse]) -> StrategyOutcome:
        failures = [r for r in responses if not r.success]
        return StrategyOutcome(
            name=name,
            success=not failures,
            responses=responses,
            connection_failed=any(r.is_connection_failure for r in failures),
            cancelled=any(r.error_code == ErrorCode.SESSION_CANCELLED for r in failures),
        )

    async def _fallback(
        self,
        channel: ExecutionChannel,
        session: ScaffoldSession,
        responses: List[CommandResponse],
        reason: Optional[AppForgeError]
    ) -> MaterializationResult:
        try:
            artifact = await channel.materialize_locally(session)
        except ArchiveFailedError as e:
            logger.log_error_with_context(e, "archive fallback", project_name=session.project_name)
            return MaterializationResult(
                status=MaterializationStatus.FAILED,
                session_id=session.session_id,
                project_name=session.project_name,
                responses=responses,
                error=e.to_dict(),
            )

        return MaterializationResult(
            status=MaterializationStatus.ARCHIVED,
            session_id=session.session_id,
            project_name=session.project_name,
            archive_path=str(artifact.path),
            responses=responses,
            error=reason.to_dict() if reason is not None else None,
        )

    def _cancelled_result(self, session: ScaffoldSession, responses: List[CommandResponse]) -> MaterializationResult:
        logger.info(f"[SessionOrchestrator] Session {session.session_id} cancelled")
        self._notify(ProjectCreationNotice(
            success=False,
            message=f"Project '{session.project_name}' was cancelled",
            project_name=session.project_name,
            error=ErrorCode.SESSION_CANCELLED,
        ))
        return MaterializationResult(
            status=MaterializationStatus.FAILED,
            session_id=session.session_id,
            project_name=session.project_name,
            responses=responses,
            error={"code": ErrorCode.SESSION_CANCELLED, "message": "Session cancelled", "details": {}},
        )
