"""Boundary to the host: progress messages, stop signal and flow upload.

The runner only needs to send results outward and to observe a stop
request between steps. Flow documents can be posted to a downstream backend;
that POST is the only network call the replay core makes itself.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Literal, Optional, Union

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..config import get_settings
from .models import Flow

logger = structlog.get_logger(__name__)


class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StepExecutingMessage(_Message):
    type: Literal["STEP_EXECUTING"] = "STEP_EXECUTING"
    step: dict[str, Any]
    step_index: int = Field(..., alias="stepIndex")
    total_steps: int = Field(..., alias="totalSteps")
    current_url: Optional[str] = Field(None, alias="currentUrl")


class StepCompletedMessage(_Message):
    type: Literal["STEP_COMPLETED"] = "STEP_COMPLETED"
    step_index: int = Field(..., alias="stepIndex")
    result: dict[str, Any]


class FlowFailedMessage(_Message):
    type: Literal["FLOW_FAILED"] = "FLOW_FAILED"
    error: str
    error_code: Optional[str] = Field(None, alias="errorCode")
    failed_step_index: Optional[int] = Field(None, alias="failedStepIndex")
    failed_step: Optional[dict[str, Any]] = Field(None, alias="failedStep")


RunMessage = Union[StepExecutingMessage, StepCompletedMessage, FlowFailedMessage]


class RunReporter(ABC):
    """Receives progress messages from the runner."""

    @abstractmethod
    async def send(self, message: RunMessage) -> None:
        pass


class LoggingReporter(RunReporter):
    """Writes progress messages to the log."""

    def __init__(self):
        self.log = logger.bind(component="run_reporter")

    async def send(self, message: RunMessage) -> None:
        data = message.to_dict()
        kind = data.pop("type")
        if isinstance(message, FlowFailedMessage):
            self.log.warning(kind, **data)
        else:
            self.log.info(kind, step_index=data.get("stepIndex"))


class CollectingReporter(RunReporter):
    """Keeps every message, for tests and for callers that batch results."""

    def __init__(self):
        self.messages: list[RunMessage] = []

    async def send(self, message: RunMessage) -> None:
        self.messages.append(message)

    def of_type(self, message_type: str) -> list[RunMessage]:
        return [m for m in self.messages if m.type == message_type]


class StopSignal:
    """Cooperative stop request, checked by the runner between steps."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def stop(self, reason: Optional[str] = None) -> None:
        self.reason = reason
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def reset(self) -> None:
        self.reason = None
        self._event.clear()

    async def wait(self) -> None:
        await self._event.wait()


class FlowUploadError(Exception):
    """Error posting a flow document to the backend."""
    pass


class FlowUploader:
    """Posts flow documents to a downstream HTTP endpoint."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.endpoint = endpoint or get_settings().backend_endpoint
        if not self.endpoint:
            raise FlowUploadError("Backend endpoint not configured. Set FLOWREPLAY_BACKEND_ENDPOINT.")
        self._client = client
        self._timeout = timeout

    async def send(self, flow: Flow) -> dict:
        """POST the flow document and return the decoded response body."""
        client = self._client or httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        try:
            response = await client.post(self.endpoint, json=flow.to_dict())
            response.raise_for_status()
            logger.info("Flow sent", flow_id=flow.id, endpoint=self.endpoint, steps=len(flow.steps))
            return response.json() if response.content else {}
        except httpx.HTTPStatusError as e:
            raise FlowUploadError(
                f"Backend rejected flow {flow.id}: {e.response.status_code} {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise FlowUploadError(f"Failed to send flow {flow.id}: {e}") from e
        finally:
            if self._client is None:
                await client.aclose()
