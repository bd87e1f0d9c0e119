"""
OCR Result Store - last recognition result per conversation

Holds at most one PendingOcrResult per conversation. A new recognition
overwrites the previous one; the result id is what a later file consent
response is checked against. Two backends:
- InMemoryResultStore: process-local dict (default)
- JsonFileResultStore: one JSON file per conversation, written atomically,
  for deployments that restart between the consent card and the answer
"""

from __future__ import annotations
import asyncio
import hashlib
import json
import time
import weakref
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles

from .exceptions import ConfigurationError
from .utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PendingOcrResult:
    """Text recognized from the last image a conversation sent"""
    result_id: str
    text: str
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PendingOcrResult:
        return cls(
            result_id=str(data["result_id"]),
            text=str(data["text"]),
            created_at=float(data.get("created_at", 0.0)),
        )


class ResultStore(ABC):
    """
    Single-slot per-conversation store

    Concurrent turns are resolved by last write wins; callers detect a
    superseded result by comparing result ids, never by locking.
    """

    def __init__(self, ttl_seconds: float = 0):
        # 0 disables elapsed-time expiry; results then only expire by supersession
        self.ttl_seconds = ttl_seconds

    @abstractmethod
    async def get(self, conversation_id: str) -> Optional[PendingOcrResult]:
        ...

    @abstractmethod
    async def put(self, conversation_id: str, result: PendingOcrResult) -> None:
        ...

    @abstractmethod
    async def delete(self, conversation_id: str) -> None:
        ...

    def is_expired(self, result: PendingOcrResult, now: Optional[float] = None) -> bool:
        if self.ttl_seconds <= 0:
            return False
        now = time.time() if now is None else now
        return now - result.created_at > self.ttl_seconds

    async def get_current(self, conversation_id: str, result_id: Optional[str]) -> Optional[PendingOcrResult]:
        """
        Return the pending result only if it is the one result_id names and
        it has not expired; otherwise None.
        """
        result = await self.get(conversation_id)
        if result is None or not result_id or result.result_id != result_id:
            return None
        if self.is_expired(result):
            logger.debug(
                "Pending OCR result expired by age",
                extra={"event": "result_store.expired", "conversation_id": conversation_id},
            )
            return None
        return result


class InMemoryResultStore(ResultStore):
    """Process-local store"""

    def __init__(self, ttl_seconds: float = 0):
        super().__init__(ttl_seconds)
        self._results: Dict[str, PendingOcrResult] = {}

    async def get(self, conversation_id: str) -> Optional[PendingOcrResult]:
        return self._results.get(conversation_id)

    async def put(self, conversation_id: str, result: PendingOcrResult) -> None:
        self._results[conversation_id] = result

    async def delete(self, conversation_id: str) -> None:
        self._results.pop(conversation_id, None)


class JsonFileResultStore(ResultStore):
    """
    One JSON file per conversation under a directory

    Writes go to a temp file that is renamed over the target, so a reader
    never sees a partially written result.
    """

    def __init__(self, results_dir: Path, ttl_seconds: float = 0):
        super().__init__(ttl_seconds)
        self.results_dir = Path(results_dir)
        self.results_dir.mkdir(parents=True, exist_ok=True)
        # Locks live only while a read or write holds them
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        logger.info(f"OCR result store initialized - results_dir: {self.results_dir}")

    def _path_for(self, conversation_id: str) -> Path:
        # Conversation ids contain ':' and other characters unsafe in filenames
        digest = hashlib.sha256(conversation_id.encode("utf-8")).hexdigest()
        return self.results_dir / f"{digest}.json"

    def _get_lock(self, conversation_id: str) -> asyncio.Lock:
        """Get or create lock for a conversation file [CMV]"""
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    async def get(self, conversation_id: str) -> Optional[PendingOcrResult]:
        path = self._path_for(conversation_id)
        async with self._get_lock(conversation_id):
            if not path.exists():
                return None
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                content = await f.read()

        try:
            return PendingOcrResult.from_dict(json.loads(content))
        except (ValueError, KeyError, TypeError) as e:
            logger.error(
                f"OCR result file corrupted - {path.name}: {e}",
                extra={"event": "result_store.corrupt", "conversation_id": conversation_id},
            )
            return None

    async def put(self, conversation_id: str, result: PendingOcrResult) -> None:
        path = self._path_for(conversation_id)
        temp_path = path.with_suffix(".json.tmp")
        async with self._get_lock(conversation_id):
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(result.to_dict(), ensure_ascii=False))
            # Atomic rename
            temp_path.replace(path)

    async def delete(self, conversation_id: str) -> None:
        path = self._path_for(conversation_id)
        async with self._get_lock(conversation_id):
            path.unlink(missing_ok=True)


def create_result_store(config: Dict[str, Any]) -> ResultStore:
    """Build the result store selected by RESULT_STORE_BACKEND"""
    backend = (config.get("RESULT_STORE_BACKEND") or "memory").lower()
    ttl = config.get("OCR_RESULT_TTL_S", 0) or 0

    if backend == "memory":
        return InMemoryResultStore(ttl_seconds=ttl)
    if backend == "json":
        return JsonFileResultStore(Path(config.get("RESULT_STORE_DIR", "data/ocr_results")), ttl_seconds=ttl)
    raise ConfigurationError(f"Unknown result store backend: {backend}")
