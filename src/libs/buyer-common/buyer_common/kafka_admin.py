# src/libs/buyer-common/buyer_common/kafka_admin.py
import logging
from typing import List

from confluent_kafka import KafkaException
from confluent_kafka.admin import AdminClient
from tenacity import before_log, retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from .config import KAFKA_BOOTSTRAP_SERVERS

logger = logging.getLogger(__name__)


@retry(
    retry=retry_if_exception_type(KafkaException),
    stop=stop_after_attempt(15),  # 15 attempts * 4s = 60s
    wait=wait_fixed(4),
    before=before_log(logger, logging.INFO),
    reraise=True,
)
def ensure_topics_exist(required_topics: List[str], bootstrap_servers: str = KAFKA_BOOTSTRAP_SERVERS):
    """
    Verifies that every required topic exists on the cluster.

    Missing topics raise KafkaException, which is retried so the gateway can
    start while a topic-creator job is still running. After the last attempt
    the exception propagates and startup fails.
    """
    logger.info(f"Verifying existence of Kafka topics: {required_topics}...")

    admin_client = AdminClient({"bootstrap.servers": bootstrap_servers})
    cluster_metadata = admin_client.list_topics(timeout=5)
    existing_topics = cluster_metadata.topics.keys()

    missing_topics = [topic for topic in required_topics if topic not in existing_topics]
    if missing_topics:
        logger.warning(f"Required topics are not yet available: {missing_topics}. Retrying...")
        raise KafkaException(f"Required topics are not yet available: {missing_topics}")

    logger.info("All required Kafka topics found.")
