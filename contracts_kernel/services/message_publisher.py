"""
Message publisher: JSON envelopes over a topic client.

The bus transport is an external collaborator; anything with an async
``send(message)`` satisfies TopicClient.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Protocol
from uuid import uuid4

from contracts_kernel.domain.dtos import BusMessage
from contracts_kernel.logging_config import get_logger

logger = get_logger("services.message_publisher")


class TopicClient(Protocol):
    async def send(self, message: BusMessage) -> None: ...


class MessagePublisher:
    """Serializes a payload to JSON and sends it with user properties."""

    def __init__(self, topic_client: TopicClient):
        self._topic_client = topic_client

    async def publish(
        self,
        payload: Mapping[str, Any],
        properties: Mapping[str, str] | None = None,
    ) -> BusMessage:
        message = BusMessage(
            message_id=str(uuid4()),
            body=json.dumps(payload, sort_keys=True, default=str).encode("utf-8"),
            user_properties=dict(properties or {}),
        )
        await self._topic_client.send(message)
        logger.info(
            "message_published",
            extra={
                "message_id": message.message_id,
                "user_properties": message.user_properties,
            },
        )
        return message
