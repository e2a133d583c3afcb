from unittest.mock import MagicMock, patch

import pytest
from confluent_kafka import KafkaException
from tenacity import wait_none

from buyer_common.kafka_admin import ensure_topics_exist


def _metadata(*topics):
    metadata = MagicMock()
    metadata.topics = {topic: MagicMock() for topic in topics}
    return metadata


@patch('buyer_common.kafka_admin.AdminClient')
def test_ensure_topics_exist_passes_when_all_topics_present(MockAdminClient):
    MockAdminClient.return_value.list_topics.return_value = _metadata("buyer_app_requests", "other")

    ensure_topics_exist(["buyer_app_requests"], bootstrap_servers="mock:9092")

    MockAdminClient.assert_called_once_with({"bootstrap.servers": "mock:9092"})


@patch('buyer_common.kafka_admin.AdminClient')
def test_ensure_topics_exist_raises_after_retries(MockAdminClient):
    MockAdminClient.return_value.list_topics.return_value = _metadata("other")

    with pytest.raises(KafkaException):
        ensure_topics_exist.retry_with(wait=wait_none())(["buyer_app_requests"])

    assert MockAdminClient.return_value.list_topics.call_count == 15
