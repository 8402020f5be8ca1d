"""Tests for CrisisEventPublisher.

Crisis events publish to Kinesis, not direct service calls.
These tests verify the publisher correctly formats and sends events.
"""
import json
import pytest
from unittest.mock import patch, MagicMock

from mindspace.shared.models import Classification, RiskCategory, Signal
from mindspace.services.safety_service.crisis_publisher import (
    CrisisEventPublisher,
    CrisisEvent,
)


@pytest.fixture
def triggered_classification():
    return Classification(
        triggered=True,
        score=0.8,
        signals=(
            Signal(category=RiskCategory.IDEATION, confidence=0.9, span=(2, 13)),
            Signal(category=RiskCategory.SELF_HARM, confidence=0.8),
            Signal(category=RiskCategory.MEDICAL, confidence=0.8),
        ),
    )


class TestCrisisEvent:
    """Tests for CrisisEvent dataclass."""

    def test_event_creation(self):
        """Event should be created with correct defaults."""
        event = CrisisEvent(
            event_id="evt_123",
            turn_id="turn_456",
            owner_id_hash="hash_abc",
        )

        assert event.event_type == "safety.crisis.detected"
        assert event.severity == "high"
        assert event.risk_score == 1.0
        assert event.trigger_source == "chat"
        assert event.requires_human_intervention is True

    def test_from_classification(self, triggered_classification):
        event = CrisisEvent.from_classification(
            triggered_classification,
            turn_id="turn_456",
            owner_id_hash="hash_abc",
            persona="arjuna",
            pattern_version="2025.06.01",
        )

        assert event.event_id.startswith("evt_")
        assert event.severity == "high"
        assert event.risk_score == 0.8
        assert event.categories == ["ideation", "self_harm", "medical"]
        assert event.persona == "arjuna"

    def test_forced_trigger_is_critical(self):
        event = CrisisEvent.from_classification(
            Classification(triggered=True, score=1.0),
            turn_id="turn_1",
            owner_id_hash="hash_abc",
        )

        assert event.severity == "critical"
        assert event.categories == []

    def test_event_to_kinesis_payload(self):
        """Event should convert to valid Kinesis payload."""
        event = CrisisEvent(
            event_id="evt_123",
            turn_id="turn_456",
            owner_id_hash="hash_abc",
            persona="maya",
            categories=["ideation"],
            pattern_version="2025.06.01",
        )

        payload = event.to_kinesis_payload()

        assert payload["event_id"] == "evt_123"
        assert payload["event_type"] == "safety.crisis.detected"
        assert payload["source"] == "safety-service"
        assert payload["timestamp"].endswith("Z")
        assert payload["data"]["turn_id"] == "turn_456"
        assert payload["data"]["owner_id_hash"] == "hash_abc"
        assert payload["data"]["persona"] == "maya"
        assert payload["data"]["categories"] == ["ideation"]

    def test_payload_has_no_message_text(self, triggered_classification):
        event = CrisisEvent.from_classification(
            triggered_classification,
            turn_id="turn_456",
            owner_id_hash="hash_abc",
        )

        serialized = json.dumps(event.to_kinesis_payload())

        assert "want to die" not in serialized

    def test_event_is_immutable(self):
        """Event should be immutable (frozen dataclass)."""
        event = CrisisEvent(
            event_id="evt_123",
            turn_id="turn_456",
            owner_id_hash="hash_abc",
        )

        with pytest.raises(Exception):  # FrozenInstanceError
            event.severity = "low"


class TestCrisisEventPublisher:
    """Tests for CrisisEventPublisher."""

    def test_publisher_initialization(self):
        """Publisher should initialize with correct config."""
        publisher = CrisisEventPublisher(
            stream_name="test-stream",
            enabled=True,
            region="us-west-2",
        )

        assert publisher.stream_name == "test-stream"
        assert publisher.enabled is True
        assert publisher.region == "us-west-2"

    def test_publish_disabled_returns_false(self, triggered_classification):
        """Publishing when disabled should return False."""
        publisher = CrisisEventPublisher(enabled=False)

        result = publisher.publish_crisis(
            triggered_classification,
            turn_id="turn_123",
            owner_id_hash="hash_abc",
        )

        assert result is False

    @patch('boto3.client')
    def test_publish_success(self, mock_boto_client, triggered_classification):
        """Successful publish should return True."""
        mock_kinesis = MagicMock()
        mock_kinesis.put_record.return_value = {
            "ShardId": "shard-001",
            "SequenceNumber": "12345",
        }
        mock_boto_client.return_value = mock_kinesis

        publisher = CrisisEventPublisher(
            stream_name="test-stream",
            enabled=True,
        )

        result = publisher.publish_crisis(
            triggered_classification,
            turn_id="turn_123",
            owner_id_hash="hash_abc",
            persona="arjuna",
            pattern_version="2025.06.01",
        )

        assert result is True
        mock_boto_client.assert_called_once_with("kinesis", region_name=publisher.region)
        mock_kinesis.put_record.assert_called_once()

        call_kwargs = mock_kinesis.put_record.call_args.kwargs
        assert call_kwargs["StreamName"] == "test-stream"
        assert call_kwargs["PartitionKey"] == "hash_abc"

        payload = json.loads(call_kwargs["Data"])
        assert payload["event_type"] == "safety.crisis.detected"
        assert payload["data"]["turn_id"] == "turn_123"
        assert payload["data"]["persona"] == "arjuna"
        assert payload["data"]["pattern_version"] == "2025.06.01"

    def test_publish_failure_returns_false(self, triggered_classification):
        """Failed publish should return False, not raise."""
        mock_kinesis = MagicMock()
        mock_kinesis.put_record.side_effect = Exception("Kinesis error")

        publisher = CrisisEventPublisher(
            stream_name="test-stream",
            enabled=True,
        )
        publisher._kinesis_client = mock_kinesis

        result = publisher.publish_crisis(
            triggered_classification,
            turn_id="turn_123",
            owner_id_hash="hash_abc",
        )

        assert result is False

    @patch('boto3.client')
    def test_publish_without_client_logs_fallback(self, mock_boto_client, triggered_classification):
        """Publishing without Kinesis client should log fallback."""
        mock_boto_client.side_effect = Exception("No credentials")
        publisher = CrisisEventPublisher(
            stream_name="test-stream",
            enabled=True,
        )

        result = publisher.publish_crisis(
            triggered_classification,
            turn_id="turn_123",
            owner_id_hash="hash_abc",
        )

        assert result is False

    def test_publish_batch_success(self):
        """Batch publish should return count of successful records."""
        mock_kinesis = MagicMock()
        mock_kinesis.put_records.return_value = {
            "FailedRecordCount": 1,
            "Records": [{"ShardId": "shard-001"}, {"ErrorCode": "ProvisionedThroughputExceededException"}],
        }

        publisher = CrisisEventPublisher(
            stream_name="test-stream",
            enabled=True,
        )
        publisher._kinesis_client = mock_kinesis

        events = [
            CrisisEvent(event_id="evt_1", turn_id="turn_1", owner_id_hash="hash_1"),
            CrisisEvent(event_id="evt_2", turn_id="turn_2", owner_id_hash="hash_2"),
        ]

        result = publisher.publish_batch(events)

        assert result == 1
        records = mock_kinesis.put_records.call_args.kwargs["Records"]
        assert [r["PartitionKey"] for r in records] == ["hash_1", "hash_2"]

    def test_publish_batch_empty_returns_zero(self):
        """Empty batch should return 0."""
        publisher = CrisisEventPublisher(enabled=True)

        result = publisher.publish_batch([])

        assert result == 0
