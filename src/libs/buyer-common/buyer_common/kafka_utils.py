import abc
import logging
import threading
import time
from typing import List, Optional, Tuple

from confluent_kafka import Consumer, KafkaException, Producer, TopicPartition

from .config import BUYER_APP_PROJECT_ID, KAFKA_BOOTSTRAP_SERVERS, KAFKA_PUBLISH_TIMEOUT_SECONDS
from .exceptions import PublishError
from .monitoring import kafka_publish_timer, observe_kafka_publish_error, observe_kafka_published

logger = logging.getLogger(__name__)

Headers = List[Tuple[str, bytes]]


def format_message_id(topic: str, partition: int, offset: int) -> str:
    """Builds the opaque message id for a delivered record."""
    return f"{topic}:{partition}:{offset}"


def parse_message_id(message_id: str) -> Tuple[str, int, int]:
    """
    Splits a message id produced by format_message_id back into
    (topic, partition, offset). Raises ValueError on anything else.
    """
    topic, partition, offset = message_id.rsplit(":", 2)
    if not topic:
        raise ValueError(f"Message id '{message_id}' has no topic.")
    return topic, int(partition), int(offset)


class MessagePublisher(abc.ABC):
    """
    Publishing capability handed to the gateway. publish() blocks until the
    broker confirms receipt and returns the broker-assigned message id.
    """

    @abc.abstractmethod
    def publish(self, topic: str, data: bytes, headers: Optional[Headers] = None) -> str:
        ...

    def close(self) -> None:
        """Releases broker resources. No-op by default."""


class KafkaPublisher(MessagePublisher):
    """
    Synchronous publisher over confluent_kafka.Producer with production-safe defaults:
    - Idempotence enabled for exactly-once produce within a session
    - Strong durability (acks=all) and bounded in-flight requests
    Each publish waits for its own delivery report, so the returned message id
    always refers to a record the broker has acknowledged.
    """

    def __init__(
        self,
        bootstrap_servers: str = KAFKA_BOOTSTRAP_SERVERS,
        client_id: str = BUYER_APP_PROJECT_ID,
        publish_timeout: float = KAFKA_PUBLISH_TIMEOUT_SECONDS,
    ):
        self.producer = None
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.publish_timeout = publish_timeout
        self._initialize_producer()

    def _initialize_producer(self):
        try:
            conf = {
                # Broker connectivity
                "bootstrap.servers": self.bootstrap_servers,
                "client.id": f"{self.client_id}-buyer-app",

                # Reliability
                "enable.idempotence": True,
                "acks": "all",
                "max.in.flight.requests.per.connection": 5,

                # Latency over throughput: every publish is awaited by an HTTP caller
                "linger.ms": 0,

                # Timeouts & keepalive
                "delivery.timeout.ms": int(self.publish_timeout * 1000),
                "request.timeout.ms": min(30000, int(self.publish_timeout * 1000)),
                "socket.keepalive.enable": True,
            }

            self.producer = Producer(conf)
            logger.info(f"Kafka producer initialized for brokers: {self.bootstrap_servers}")
        except KafkaException as e:
            logger.error(f"Failed to initialize Kafka producer: {e}")
            self.producer = None
            raise

    def publish(self, topic: str, data: bytes, headers: Optional[Headers] = None) -> str:
        if not self.producer:
            logger.error(f"Kafka producer not initialized. Cannot publish message to topic {topic}.")
            raise PublishError("Kafka producer is not initialized.", topic)

        delivered = threading.Event()
        outcome: dict = {}

        def delivery_report(err, msg):
            if err is not None:
                outcome["error"] = str(err)
                logger.error(f"Message delivery failed for topic {msg.topic()}: {err}")
            else:
                outcome["message_id"] = format_message_id(msg.topic(), msg.partition(), msg.offset())
                logger.info(
                    "Message delivered",
                    extra={"topic": msg.topic(), "partition": msg.partition(), "offset": msg.offset()},
                )
            delivered.set()

        with kafka_publish_timer(topic):
            try:
                self.producer.produce(
                    topic,
                    value=data,
                    headers=headers[:] if headers else [],
                    on_delivery=delivery_report,
                )
                deadline = time.monotonic() + self.publish_timeout
                # The callback may be served by another thread's poll; wait on our own event.
                while not delivered.is_set():
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    self.producer.poll(min(remaining, 0.1))
            except (KafkaException, BufferError) as e:
                observe_kafka_publish_error(topic, type(e).__name__)
                logger.error(f"Kafka rejected message for topic {topic}: {e}", exc_info=True)
                raise PublishError(f"Failed to publish message to topic '{topic}': {e}", topic) from e

        if not delivered.is_set():
            observe_kafka_publish_error(topic, "DeliveryTimeout")
            raise PublishError(
                f"Delivery to topic '{topic}' was not confirmed within {self.publish_timeout}s.", topic
            )
        if "error" in outcome:
            observe_kafka_publish_error(topic, "DeliveryFailed")
            raise PublishError(f"Delivery to topic '{topic}' failed: {outcome['error']}", topic)

        observe_kafka_published(topic)
        return outcome["message_id"]

    def fetch(self, message_id: str, timeout: float = 5.0) -> Optional[bytes]:
        """
        Reads back the record addressed by a message id returned from publish().
        Returns None when the record cannot be read within the timeout.
        """
        topic, partition, offset = parse_message_id(message_id)
        consumer = Consumer(
            {
                "bootstrap.servers": self.bootstrap_servers,
                "group.id": f"{self.client_id}-message-lookup",
                "enable.auto.commit": False,
                "auto.offset.reset": "error",
            }
        )
        try:
            consumer.assign([TopicPartition(topic, partition, offset)])
            msg = consumer.poll(timeout)
            if msg is None:
                return None
            if msg.error():
                logger.warning(f"Lookup of message {message_id} failed: {msg.error()}")
                return None
            if msg.offset() != offset:
                return None
            return msg.value()
        finally:
            consumer.close()

    def flush(self, timeout: int = 10):
        if self.producer:
            return self.producer.flush(timeout)
        return 0

    def close(self) -> None:
        remaining = self.flush()
        if remaining:
            logger.warning(f"{remaining} Kafka messages were still queued at shutdown.")
