"""Flow persistence behind a key-value interface.

The flow lives under one fixed key. Adapters only need ``get``/``set``/
``remove``; the store handles (de)serialization and the empty-flow default.
"""

import json
from pathlib import Path
from typing import Any, Optional, Protocol

import structlog

from .models import BaseStep, Flow

logger = structlog.get_logger(__name__)

FLOW_KEY = "flow"


class StorageAdapter(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryStorageAdapter:
    """In-memory storage, used in tests and for one-off runs."""

    def __init__(self):
        self._data: dict[str, Any] = {}

    async def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorageAdapter:
    """Stores each key as a member of one JSON object on disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        return json.loads(self.path.read_text(encoding="utf-8") or "{}")

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    async def get(self, key: str) -> Optional[Any]:
        return self._read().get(key)

    async def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    async def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class FlowStore:
    """Reads and writes the flow under the ``flow`` key."""

    def __init__(self, adapter: Optional[StorageAdapter] = None):
        self.adapter = adapter or MemoryStorageAdapter()

    async def get_flow(self) -> Flow:
        """Stored flow, or a fresh empty flow when nothing is stored."""
        data = await self.adapter.get(FLOW_KEY)
        if data is None:
            return Flow.new()
        return Flow.from_dict(data)

    async def save_flow(self, flow: Flow) -> None:
        await self.adapter.set(FLOW_KEY, flow.to_dict())

    async def clear_flow(self) -> None:
        await self.adapter.remove(FLOW_KEY)

    async def append_step(self, step: BaseStep) -> Flow:
        flow = (await self.get_flow()).with_step(step)
        await self.save_flow(flow)
        logger.debug("Step appended", flow_id=flow.id, step_type=step.type, steps=len(flow.steps))
        return flow

    async def remove_last_step(self) -> Flow:
        flow = await self.get_flow()
        if flow.steps:
            flow = flow.without_last_step()
            await self.save_flow(flow)
        return flow
