"""
RabbitMQ Consumer Infrastructure

Provides the base consumer class, connection management and the publisher
for the sync request queue.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import aio_pika
from aio_pika import IncomingMessage
from aio_pika.abc import AbstractRobustChannel, AbstractRobustConnection
from aio_pika.pool import Pool

from src.config import get_settings

logger = logging.getLogger(__name__)

# Highest priority accepted by sync queues
MAX_PRIORITY = 10


def queue_arguments(queue_name: str) -> dict[str, Any]:
    """Arguments shared by consumer and publisher declarations of a queue."""
    return {
        "x-dead-letter-exchange": f"{queue_name}-dlx",
        "x-dead-letter-routing-key": queue_name,
        "x-max-priority": MAX_PRIORITY,
    }


async def declare_queue_with_dlq(channel: AbstractRobustChannel, queue_name: str) -> aio_pika.Queue:
    """Declare the dead letter exchange, the poison queue and the main queue."""
    dead_letter_exchange = await channel.declare_exchange(
        f"{queue_name}-dlx",
        aio_pika.ExchangeType.DIRECT,
        durable=True,
    )

    dlq = await channel.declare_queue(f"{queue_name}-poison", durable=True)
    await dlq.bind(dead_letter_exchange, routing_key=queue_name)

    return await channel.declare_queue(
        queue_name,
        durable=True,
        arguments=queue_arguments(queue_name),
    )


class RabbitMQConnection:
    """
    Manages RabbitMQ connection pool.

    Uses connection pooling for efficient resource usage across multiple consumers.
    """

    _instance: "RabbitMQConnection | None" = None
    _connection_pool: Pool | None = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def get_connection(self):
        """Get a connection context manager from the pool."""
        if self._connection_pool is None:
            raise RuntimeError("Connection pool not initialized. Call init_pools() first.")
        return self._connection_pool.acquire()

    async def init_pools(self) -> None:
        """Initialize the connection pool. Must be called before using the connection."""
        if self._connection_pool is not None:
            return
        settings = get_settings()

        async def get_connection() -> AbstractRobustConnection:
            return await aio_pika.connect_robust(settings.rabbitmq_url)

        # One connection for the consumer, the rest for publishers
        self._connection_pool = Pool(get_connection, max_size=3)

        logger.info("RabbitMQ connection pools initialized")

    async def close(self) -> None:
        """Close all connections."""
        if self._connection_pool:
            await self._connection_pool.close()
        self._connection_pool = None
        logger.info("RabbitMQ connections closed")


# Global connection manager
rabbitmq = RabbitMQConnection()


class BaseConsumer(ABC):
    """
    Base class for RabbitMQ consumers.

    Provides:
    - Automatic connection and channel management
    - Message acknowledgment handling
    - Error handling with dead letter queue support
    - Graceful shutdown
    """

    def __init__(
        self,
        queue_name: str,
        prefetch_count: int = 1,
    ):
        """
        Initialize consumer.

        Args:
            queue_name: Name of the queue to consume from
            prefetch_count: Number of messages to prefetch (QoS)
        """
        self.queue_name = queue_name
        self.prefetch_count = prefetch_count

        self._channel: AbstractRobustChannel | None = None
        self._queue: aio_pika.Queue | None = None
        self._connection_ctx = None
        self._tasks: set[asyncio.Task] = set()
        self._running = False

    async def start(self) -> None:
        """Start consuming messages."""
        self._running = True

        await rabbitmq.init_pools()
        # Keep the pooled connection checked out for the consumer's lifetime
        self._connection_ctx = rabbitmq.get_connection()
        connection = await self._connection_ctx.__aenter__()
        channel = await connection.channel()
        self._channel = channel
        await channel.set_qos(prefetch_count=self.prefetch_count)

        self._queue = await declare_queue_with_dlq(channel, self.queue_name)
        logger.info(f"Consumer started for queue: {self.queue_name}")

        await self._queue.consume(self._on_message)

    async def stop(self) -> None:
        """Stop consuming messages."""
        self._running = False
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._channel:
            await self._channel.close()
        if self._connection_ctx:
            await self._connection_ctx.__aexit__(None, None, None)
            self._connection_ctx = None
        logger.info(f"Consumer stopped for queue: {self.queue_name}")

    async def _on_message(self, message: IncomingMessage) -> None:
        """
        Handle incoming message.

        Spawns a task per message so up to prefetch_count messages are
        processed in parallel.
        """
        task = asyncio.create_task(self._process_message_with_ack(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process_message_with_ack(self, message: IncomingMessage) -> None:
        """Process a message; a raised error rejects it to the dead letter queue."""
        async with message.process(requeue=False):
            try:
                body = json.loads(message.body.decode())

                logger.info(
                    f"Processing message from {self.queue_name}",
                    extra={"message_id": message.message_id},
                )

                await self.process_message(body)

                logger.info(
                    "Message processed successfully",
                    extra={"message_id": message.message_id},
                )

            except Exception as e:
                logger.error(
                    f"Error processing message from {self.queue_name}: {e}",
                    extra={
                        "message_id": message.message_id,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                    exc_info=True,
                )
                raise

    @abstractmethod
    async def process_message(self, body: dict[str, Any]) -> None:
        """
        Process a message from the queue.

        Args:
            body: Parsed message body
        """


async def publish_message(
    queue_name: str,
    message: dict[str, Any],
    priority: int = 0,
    message_id: str | None = None,
) -> None:
    """
    Publish a message to a queue.

    Args:
        queue_name: Target queue name
        message: Message body (will be JSON encoded)
        priority: Message priority (0-10, higher = more important)
        message_id: AMQP message id
    """
    await rabbitmq.init_pools()
    async with rabbitmq.get_connection() as connection:
        channel = await connection.channel()

        try:
            await declare_queue_with_dlq(channel, queue_name)

            await channel.default_exchange.publish(
                aio_pika.Message(
                    body=json.dumps(message).encode(),
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                    priority=min(priority, MAX_PRIORITY),
                    message_id=message_id,
                    content_type="application/json",
                ),
                routing_key=queue_name,
            )

            logger.debug(f"Published message to {queue_name}", extra={"message_id": message_id})

        finally:
            await channel.close()
