"""
Table Change Feeds

Subscription sources of "table X changed" signals. The recomputation
controller only cares that a change arrived for a table, never about the
row payload.

- InMemoryChangeFeed: publish() from application code or tests
- KafkaChangeFeed: JSON events from a Kafka topic, with manual commits
"""

import asyncio
import json
from abc import ABC
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import structlog
from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError
from prometheus_client import Counter
from pydantic import BaseModel, ConfigDict, ValidationError

from crm_analytics.config import get_settings

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

CHANGE_EVENTS_CONSUMED = Counter(
    "crm_change_events_consumed_total",
    "Table change events received by change feeds",
    ["table", "status"],
)


# =============================================================================
# EVENT MODELS
# =============================================================================

class ChangeEventType(str, Enum):
    """Row-level change kinds emitted by the storefront database"""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class TableChange(BaseModel):
    """A change notification for one table"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    table: str
    event_type: ChangeEventType = ChangeEventType.UPDATE
    occurred_at: Optional[datetime] = None


ChangeListener = Callable[[TableChange], None]


# =============================================================================
# FEEDS
# =============================================================================

class ChangeFeed(ABC):
    """Base class for change sources; listeners are called in subscription order"""

    def __init__(self):
        self._listeners: List[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            Callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _dispatch(self, change: TableChange) -> int:
        """Call every listener; a failing listener is logged and counted, not propagated"""
        failures = 0
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                failures += 1
                logger.error(
                    "Change listener failed",
                    table=change.table,
                    listener=getattr(listener, "__qualname__", repr(listener)),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                CHANGE_EVENTS_CONSUMED.labels(table=change.table, status="listener_error").inc()
        CHANGE_EVENTS_CONSUMED.labels(table=change.table, status="dispatched").inc()
        return failures

    async def start(self) -> None:
        """Begin delivering changes"""

    async def stop(self) -> None:
        """Stop delivering changes"""


class InMemoryChangeFeed(ChangeFeed):
    """
    Change feed driven directly by application code.

    Example:
        feed = InMemoryChangeFeed()
        controller.attach(feed)
        feed.publish("orders")
    """

    def publish(
        self,
        table: str,
        event_type: ChangeEventType = ChangeEventType.UPDATE,
    ) -> TableChange:
        change = TableChange(table=table, event_type=event_type)
        self._dispatch(change)
        return change


@dataclass
class FeedConfig:
    """Kafka consumer configuration"""
    topics: List[str]
    group_id: str = "crm-analytics"
    bootstrap_servers: str = "localhost:9092"
    auto_offset_reset: str = "latest"
    enable_auto_commit: bool = False
    session_timeout_ms: int = 30000
    heartbeat_interval_ms: int = 10000


class KafkaChangeFeed(ChangeFeed):
    """
    Change feed consuming table-change events from Kafka.

    Messages are JSON objects such as {"table": "orders", "event_type":
    "INSERT"}. Invalid messages are logged, counted and skipped; offsets are
    committed manually after each message.

    Example:
        feed = KafkaChangeFeed()
        controller.attach(feed)
        await feed.start()
    """

    def __init__(self, config: Optional[FeedConfig] = None):
        super().__init__()
        if config is None:
            kafka = get_settings().kafka
            config = FeedConfig(
                topics=[kafka.topics_table_changes],
                group_id=kafka.consumer_group,
                bootstrap_servers=kafka.bootstrap_servers,
                auto_offset_reset=kafka.auto_offset_reset,
                session_timeout_ms=kafka.session_timeout_ms,
                heartbeat_interval_ms=kafka.heartbeat_interval_ms,
            )
        self.config = config
        self._consumer: Optional[AIOKafkaConsumer] = None
        self._task: Optional[asyncio.Task] = None

    def _create_consumer(self) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            *self.config.topics,
            bootstrap_servers=self.config.bootstrap_servers,
            group_id=self.config.group_id,
            auto_offset_reset=self.config.auto_offset_reset,
            enable_auto_commit=self.config.enable_auto_commit,
            session_timeout_ms=self.config.session_timeout_ms,
            heartbeat_interval_ms=self.config.heartbeat_interval_ms,
            key_deserializer=lambda k: k.decode("utf-8") if k else None,
        )

    @staticmethod
    def _parse_event(raw: Any) -> Optional[TableChange]:
        """Decode a message value into a TableChange, or None if invalid"""
        try:
            data: Dict[str, Any] = json.loads(raw) if isinstance(raw, (bytes, str)) else raw
            if not isinstance(data, dict):
                raise ValueError("event is not a JSON object")
            return TableChange.model_validate(data)
        except (ValidationError, ValueError, UnicodeDecodeError) as e:
            logger.warning("Invalid change event", error=str(e))
            return None

    async def _handle_message(self, message: Any) -> bool:
        """Dispatch one Kafka message; returns whether it was a valid change"""
        change = self._parse_event(message.value)
        if change is None:
            CHANGE_EVENTS_CONSUMED.labels(table="unknown", status="invalid").inc()
            return False

        logger.debug(
            "Change event received",
            table=change.table,
            event_type=change.event_type.value,
            topic=message.topic,
        )
        self._dispatch(change)
        return True

    async def _consume(self) -> None:
        try:
            async for message in self._consumer:
                await self._handle_message(message)
                await self._consumer.commit()
        except KafkaError as e:
            logger.error("Kafka change feed stopped", error=str(e))
            raise
        except Exception as e:
            logger.error("Change feed consumer crashed", error=str(e), error_type=type(e).__name__)
            raise

    async def start(self) -> None:
        logger.info(
            "Starting change feed",
            topics=self.config.topics,
            group_id=self.config.group_id,
        )
        self._consumer = self._create_consumer()
        await self._consumer.start()
        self._task = asyncio.create_task(self._consume())

    async def stop(self) -> None:
        logger.info("Stopping change feed")
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            except KafkaError as e:
                logger.warning("Change feed ended with error", error=str(e))
            self._task = None
        if self._consumer is not None:
            await self._consumer.stop()
            self._consumer = None
        logger.info("Change feed stopped")
