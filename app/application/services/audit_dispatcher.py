import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from ..ports.audit_logger import AuditLogger
from ..ports.session_repo import OtpSession, OtpStatus

logger = logging.getLogger(__name__)


class AuditDispatcher:
    """Fire-and-forget mirroring of session transitions into an audit sink.

    Writes run on a single worker thread so they apply in the order they were
    issued. A failed write is logged and dropped.
    """

    def __init__(self, audit_logger: AuditLogger):
        self.audit_logger = audit_logger
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="otp-audit")
        self._pending: Set[asyncio.Future] = set()

    def _run(self, action: str, fn, *args) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception(f"Audit write '{action}' failed")

    def _submit(self, action: str, fn, *args) -> None:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._executor, self._run, action, fn, *args)
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    def created(self, session: OtpSession) -> None:
        self._submit("created", self.audit_logger.record, session)

    def verified(self, session_id: str, verified_at: datetime) -> None:
        self._submit("verified", self.audit_logger.update_status, session_id, OtpStatus.VERIFIED, verified_at)

    def expired(self, session_id: str) -> None:
        self._submit("expired", self.audit_logger.update_status, session_id, OtpStatus.EXPIRED, None)

    async def list_recent(self, limit: int) -> List[Dict[str, Any]]:
        # same worker as writes, so earlier transitions are visible
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.audit_logger.list_recent, limit)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending))

    def close(self) -> None:
        self._executor.shutdown(wait=True)
