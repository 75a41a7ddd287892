"""SQS client for message queue operations."""

import json
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional

import boto3
from loguru import logger


def get_sqs_client(region: Optional[str] = None):
    """Get SQS client using environment credentials."""
    return boto3.client(
        "sqs",
        region_name=region or os.getenv("AWS_REGION", "eu-north-1"),
    )


def get_queue_url() -> str:
    """Get the contact finder queue URL from environment."""
    url = os.getenv("SQS_CONTACT_FINDER_QUEUE_URL")
    if not url:
        raise ValueError("SQS_CONTACT_FINDER_QUEUE_URL environment variable not set")
    return url


def send_message(queue_url: str, body: Dict[str, Any], client=None) -> str:
    """Send a single message to SQS. Returns message ID."""
    client = client or get_sqs_client()
    response = client.send_message(
        QueueUrl=queue_url,
        MessageBody=json.dumps(body),
    )
    return response["MessageId"]


def send_messages_batch(
    queue_url: str,
    messages: List[Dict[str, Any]],
    concurrency: int = 20,
    client=None,
) -> int:
    """Send messages in batches of 10 (SQS limit) with concurrent API calls.

    Returns number of messages successfully sent.
    """
    if not messages:
        return 0

    client = client or get_sqs_client()

    batches = []
    for i in range(0, len(messages), 10):
        batch = messages[i:i + 10]
        batches.append([
            {"Id": str(idx), "MessageBody": json.dumps(msg)}
            for idx, msg in enumerate(batch)
        ])

    def send_batch(entries):
        response = client.send_message_batch(QueueUrl=queue_url, Entries=entries)
        for failure in response.get("Failed", []):
            logger.error(f"Failed to send message: {failure}")
        return len(response.get("Successful", []))

    sent_count = 0
    with ThreadPoolExecutor(max_workers=concurrency) as executor:
        futures = [executor.submit(send_batch, batch) for batch in batches]
        for future in as_completed(futures):
            sent_count += future.result()

    return sent_count


def receive_messages(
    queue_url: str,
    max_messages: int = 1,
    wait_time_seconds: int = 20,
    visibility_timeout: int = 900,
    client=None,
) -> List[Dict[str, Any]]:
    """Receive messages with long polling.

    Returns messages with 'body' (parsed JSON), 'receipt_handle' and
    'message_id'. A body that is not valid JSON comes back as None.
    """
    client = client or get_sqs_client()

    response = client.receive_message(
        QueueUrl=queue_url,
        MaxNumberOfMessages=min(max_messages, 10),
        WaitTimeSeconds=wait_time_seconds,
        VisibilityTimeout=visibility_timeout,
    )

    messages = []
    for msg in response.get("Messages", []):
        try:
            body = json.loads(msg["Body"])
        except ValueError:
            logger.warning(f"Message {msg['MessageId']} has a non-JSON body")
            body = None
        messages.append({
            "body": body,
            "receipt_handle": msg["ReceiptHandle"],
            "message_id": msg["MessageId"],
        })

    return messages


def delete_message(queue_url: str, receipt_handle: str, client=None) -> None:
    """Delete a message after successful processing."""
    client = client or get_sqs_client()
    client.delete_message(
        QueueUrl=queue_url,
        ReceiptHandle=receipt_handle,
    )


def get_queue_attributes(queue_url: str, client=None) -> Dict[str, str]:
    """Get queue attributes like message count."""
    client = client or get_sqs_client()
    response = client.get_queue_attributes(
        QueueUrl=queue_url,
        AttributeNames=["ApproximateNumberOfMessages", "ApproximateNumberOfMessagesNotVisible"],
    )
    return response.get("Attributes", {})
