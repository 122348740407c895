from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Literal, Optional

ProgressStatus = Literal["started", "processing", "validating", "completed", "cancelled", "error"]


@dataclass(frozen=True)
class ProgressEvent:
    operation_id: str
    status: ProgressStatus
    message: str = ""
    progress: Optional[int] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"operationId": self.operation_id, "status": self.status}
        if self.message:
            payload["message"] = self.message
        if self.progress is not None:
            payload["progress"] = self.progress
        return payload


Subscriber = Callable[[ProgressEvent], None]


class ProgressBus:
    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def publish(
        self,
        operation_id: str,
        status: ProgressStatus,
        message: str = "",
        progress: Optional[int] = None,
    ) -> ProgressEvent:
        event = ProgressEvent(
            operation_id=operation_id,
            status=status,
            message=message,
            progress=progress,
            created_at=datetime.now(timezone.utc),
        )
        for subscriber in list(self._subscribers):
            subscriber(event)
        return event
