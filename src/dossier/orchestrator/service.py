"""
Automation Service - the control surface callers drive.

initialise -> login -> navigate_to_entry -> process_* per record -> close.
Each operation can be invoked on its own; close is always safe.
"""

from pathlib import Path
from typing import Optional
import structlog

from dossier.browser.manager import SessionManager
from dossier.core.config import AutomationConfig
from dossier.core.errors import SessionNotReadyError
from dossier.core.events import EventChannel
from dossier.core.models import Record
from dossier.workflows.decision import DecisionRecorder
from dossier.workflows.locator import RecordLocator
from dossier.workflows.merge import MergeWorkflow

logger = structlog.get_logger()


class AutomationService:
    """Wires the session, locator and workflows around one event channel."""

    def __init__(
        self,
        events: Optional[EventChannel] = None,
        session: Optional[SessionManager] = None,
    ):
        self.events = events or EventChannel()
        self.session = session or SessionManager(self.events)
        self.config: Optional[AutomationConfig] = None

        self._decisions: Optional[DecisionRecorder] = None
        self._merge: Optional[MergeWorkflow] = None

    async def initialise(self, config: AutomationConfig) -> None:
        self.config = config
        await self.session.initialise(config)

        locator = RecordLocator(self.session, self.events, config)
        self._decisions = DecisionRecorder(self.session, locator, self.events, config)
        self._merge = MergeWorkflow(self.session, locator, self.events, config)
        logger.info("automation_service_ready", debug=config.debug)

    async def login(self) -> bool:
        return await self.session.login()

    async def navigate_to_entry(self) -> bool:
        return await self.session.navigate_to_entry()

    async def process_accept(self, record: Record) -> Record:
        return await self._decision_recorder().process_accept(record)

    async def process_reject(self, record: Record) -> Record:
        return await self._decision_recorder().process_reject(record)

    async def process_merge(self, record: Record, output_dir: Path) -> Record:
        if self._merge is None:
            raise SessionNotReadyError("Service not initialised.")
        return await self._merge.process_merge(record, Path(output_dir))

    async def close(self) -> None:
        await self.session.close()

    @property
    def debug(self) -> bool:
        return bool(self.config and self.config.debug)

    @property
    def is_initialised(self) -> bool:
        return self.session.is_initialised

    def _decision_recorder(self) -> DecisionRecorder:
        if self._decisions is None:
            raise SessionNotReadyError("Service not initialised.")
        return self._decisions
