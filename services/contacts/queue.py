"""Contact finder queue.

Abstracts SQS operations for contact finder jobs. Messages carry
{"domain", "url", "prospectId"}.
"""

from typing import List, Optional, Protocol, runtime_checkable

from loguru import logger
from pydantic import BaseModel, ValidationError

from infra.sqs import (
    delete_message,
    get_queue_attributes,
    get_queue_url,
    get_sqs_client,
    receive_messages,
    send_messages_batch,
)
from services.contacts.service import ContactJob

DEFAULT_VISIBILITY_TIMEOUT = 900  # 15 minutes per job
DEFAULT_WAIT_TIME = 20


class QueueStats(BaseModel):
    """Queue statistics."""
    pending: int
    in_flight: int


class QueueMessage(BaseModel):
    """Message from queue. job is None when the body could not be parsed."""
    receipt_handle: str
    message_id: str
    job: Optional[ContactJob] = None


@runtime_checkable
class IContactQueue(Protocol):
    """Protocol for contact finder queue operations."""

    def get_stats(self) -> QueueStats:
        ...

    def enqueue_jobs(self, jobs: List[ContactJob]) -> int:
        """Enqueue jobs. Returns count enqueued."""
        ...

    def receive_messages(self, max_messages: int = 10) -> List[QueueMessage]:
        ...

    def delete_message(self, receipt_handle: str) -> None:
        ...


def _parse_job(body) -> Optional[ContactJob]:
    if not isinstance(body, dict):
        return None
    try:
        return ContactJob.model_validate(body)
    except ValidationError as e:
        logger.warning(f"Invalid contact job payload {body}: {e.errors()[0]['msg']}")
        return None


class SQSContactQueue(IContactQueue):
    """SQS implementation of the contact finder queue."""

    def __init__(
        self,
        queue_url: Optional[str] = None,
        region: Optional[str] = None,
        visibility_timeout: int = DEFAULT_VISIBILITY_TIMEOUT,
        wait_time: int = DEFAULT_WAIT_TIME,
    ):
        self._queue_url = queue_url
        self.visibility_timeout = visibility_timeout
        self.wait_time = wait_time
        self._client = get_sqs_client(region)

    @property
    def queue_url(self) -> str:
        if not self._queue_url:
            self._queue_url = get_queue_url()
        return self._queue_url

    def get_stats(self) -> QueueStats:
        attrs = get_queue_attributes(self.queue_url, client=self._client)
        return QueueStats(
            pending=int(attrs.get("ApproximateNumberOfMessages", 0)),
            in_flight=int(attrs.get("ApproximateNumberOfMessagesNotVisible", 0)),
        )

    def enqueue_jobs(self, jobs: List[ContactJob]) -> int:
        bodies = [job.model_dump(by_alias=True, exclude_none=True) for job in jobs]
        sent = send_messages_batch(self.queue_url, bodies, client=self._client)
        logger.info(f"Enqueued {sent}/{len(jobs)} contact jobs")
        return sent

    def receive_messages(self, max_messages: int = 10) -> List[QueueMessage]:
        raw_messages = receive_messages(
            self.queue_url,
            max_messages=min(max_messages, 10),  # SQS limit
            wait_time_seconds=self.wait_time,
            visibility_timeout=self.visibility_timeout,
            client=self._client,
        )
        return [
            QueueMessage(
                receipt_handle=msg["receipt_handle"],
                message_id=msg["message_id"],
                job=_parse_job(msg["body"]),
            )
            for msg in raw_messages
        ]

    def delete_message(self, receipt_handle: str) -> None:
        delete_message(self.queue_url, receipt_handle, client=self._client)


class MockQueue(IContactQueue):
    """Mock queue for unit testing."""

    def __init__(self):
        self._messages: List[QueueMessage] = []
        self._deleted: List[str] = []
        self._next = 0
        self.pending = 0
        self.in_flight = 0

    def add_message(self, body) -> str:
        """Add a raw message body (dict) to the mock queue."""
        n = self._next
        self._next += 1
        receipt = f"mock-receipt-{n}"
        self._messages.append(QueueMessage(receipt_handle=receipt, message_id=f"mock-{n}", job=_parse_job(body)))
        self.pending += 1
        return receipt

    def get_stats(self) -> QueueStats:
        return QueueStats(pending=self.pending, in_flight=self.in_flight)

    def enqueue_jobs(self, jobs: List[ContactJob]) -> int:
        for job in jobs:
            self.add_message(job.model_dump(by_alias=True, exclude_none=True))
        return len(jobs)

    def receive_messages(self, max_messages: int = 10) -> List[QueueMessage]:
        messages = self._messages[:max_messages]
        self._messages = self._messages[max_messages:]
        self.pending -= len(messages)
        self.in_flight += len(messages)
        return messages

    def delete_message(self, receipt_handle: str) -> None:
        self._deleted.append(receipt_handle)
        self.in_flight = max(0, self.in_flight - 1)

    @property
    def deleted(self) -> List[str]:
        return list(self._deleted)
