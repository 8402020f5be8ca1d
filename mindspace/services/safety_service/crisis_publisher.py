"""Crisis event publisher for the Safety Service.

Publishes an event to a Kinesis stream whenever a user turn is
classified as a crisis, so triage and escalation run decoupled from the
chat request. The safety reply never waits on, or fails because of,
this notification.
"""
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
import uuid

from mindspace.shared.models import Classification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrisisEvent:
    """Immutable crisis event.

    Published to Kinesis for triage consumers.
    """
    event_id: str
    event_type: str = "safety.crisis.detected"
    turn_id: str = ""
    owner_id_hash: str = ""
    persona: Optional[str] = None
    severity: str = "high"
    risk_score: float = 1.0
    categories: List[str] = field(default_factory=list)
    trigger_source: str = "chat"
    requires_human_intervention: bool = True
    pattern_version: str = ""
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def from_classification(
        cls,
        classification: Classification,
        turn_id: str,
        owner_id_hash: str,
        persona: Optional[str] = None,
        pattern_version: str = "",
        trigger_source: str = "chat",
    ) -> "CrisisEvent":
        return cls(
            event_id=f"evt_{uuid.uuid4().hex[:12]}",
            turn_id=turn_id,
            owner_id_hash=owner_id_hash,
            persona=persona,
            severity="critical" if classification.score >= 1.0 else "high",
            risk_score=classification.score,
            categories=[c.value for c in classification.categories],
            trigger_source=trigger_source,
            pattern_version=pattern_version,
        )

    def to_kinesis_payload(self) -> dict:
        """Convert to Kinesis record payload."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat() + "Z",
            "source": "safety-service",
            "data": {
                "turn_id": self.turn_id,
                "owner_id_hash": self.owner_id_hash,
                "persona": self.persona,
                "severity": self.severity,
                "risk_score": self.risk_score,
                "categories": self.categories,
                "trigger_source": self.trigger_source,
                "requires_human_intervention": self.requires_human_intervention,
                "pattern_version": self.pattern_version,
            }
        }


class CrisisEventPublisher:
    """Publishes crisis events to a Kinesis stream.

    Failure Handling:
        - Publishing failure does NOT block the safety reply
        - Failures are logged at CRITICAL level with the full payload
    """

    def __init__(
        self,
        stream_name: str = "mindspace-crisis-events",
        enabled: bool = True,
        region: Optional[str] = None,
    ):
        """Initialize publisher.

        Args:
            stream_name: Kinesis stream name
            enabled: Whether publishing is enabled (disable for local dev)
            region: AWS region (defaults to AWS_REGION env var)
        """
        self.stream_name = stream_name
        self.enabled = enabled
        self.region = region or os.getenv("AWS_REGION", "us-east-1")
        self._kinesis_client = None

        logger.info(
            "CRISIS_PUBLISHER_INITIALIZED",
            extra={
                "stream_name": stream_name,
                "enabled": enabled,
                "region": self.region,
            }
        )

    @property
    def kinesis_client(self):
        """Lazy initialization of Kinesis client."""
        if self._kinesis_client is None and self.enabled:
            try:
                import boto3
                self._kinesis_client = boto3.client(
                    "kinesis",
                    region_name=self.region,
                )
            except Exception as e:
                logger.error(
                    "KINESIS_CLIENT_INIT_FAILED",
                    extra={"error": str(e)}
                )
        return self._kinesis_client

    def publish(self, event: CrisisEvent) -> bool:
        """Publish a crisis event to Kinesis.

        Returns:
            True if published successfully, False otherwise

        Note:
            Never raises. The safety reply is already decided.
        """
        if not self.enabled:
            logger.info(
                "CRISIS_PUBLISH_SKIPPED",
                extra={
                    "event_id": event.event_id,
                    "reason": "publishing_disabled",
                }
            )
            return False

        payload = event.to_kinesis_payload()

        logger.info(
            "CRISIS_EVENT_PUBLISHING",
            extra={
                "event_id": event.event_id,
                "turn_id": event.turn_id,
                "owner_id_hash": event.owner_id_hash,
            }
        )

        try:
            if self.kinesis_client is None:
                logger.critical(
                    "CRISIS_EVENT_FALLBACK_LOG",
                    extra={
                        "event_id": event.event_id,
                        "payload": json.dumps(payload),
                        "reason": "kinesis_client_unavailable",
                        "action": "MANUAL_PROCESSING_REQUIRED",
                    }
                )
                return False

            response = self.kinesis_client.put_record(
                StreamName=self.stream_name,
                Data=json.dumps(payload),
                PartitionKey=event.owner_id_hash,  # Same owner -> same shard
            )

            logger.critical(
                "CRISIS_EVENT_PUBLISHED",
                extra={
                    "event_id": event.event_id,
                    "turn_id": event.turn_id,
                    "owner_id_hash": event.owner_id_hash,
                    "shard_id": response.get("ShardId"),
                    "sequence_number": response.get("SequenceNumber"),
                }
            )
            return True

        except Exception as e:
            logger.critical(
                "CRISIS_EVENT_PUBLISH_FAILED",
                extra={
                    "event_id": event.event_id,
                    "turn_id": event.turn_id,
                    "owner_id_hash": event.owner_id_hash,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "action": "MANUAL_REVIEW_REQUIRED",
                    "payload": json.dumps(payload),
                }
            )
            return False

    def publish_crisis(
        self,
        classification: Classification,
        turn_id: str,
        owner_id_hash: str,
        persona: Optional[str] = None,
        pattern_version: str = "",
    ) -> bool:
        """Build an event from a triggered classification and publish it."""
        event = CrisisEvent.from_classification(
            classification,
            turn_id=turn_id,
            owner_id_hash=owner_id_hash,
            persona=persona,
            pattern_version=pattern_version,
        )
        return self.publish(event)

    def publish_batch(
        self,
        events: List[CrisisEvent],
    ) -> int:
        """Publish multiple crisis events in one request.

        Returns:
            Number of successfully published events
        """
        if not self.enabled or not events:
            return 0

        if self.kinesis_client is None:
            logger.error(
                "CRISIS_BATCH_PUBLISH_FAILED",
                extra={"reason": "kinesis_client_unavailable"}
            )
            return 0

        records = [
            {
                "Data": json.dumps(event.to_kinesis_payload()),
                "PartitionKey": event.owner_id_hash,
            }
            for event in events
        ]

        try:
            response = self.kinesis_client.put_records(
                StreamName=self.stream_name,
                Records=records,
            )

            failed_count = response.get("FailedRecordCount", 0)
            success_count = len(events) - failed_count

            logger.info(
                "CRISIS_BATCH_PUBLISHED",
                extra={
                    "total": len(events),
                    "success": success_count,
                    "failed": failed_count,
                }
            )

            return success_count

        except Exception as e:
            logger.critical(
                "CRISIS_BATCH_PUBLISH_FAILED",
                extra={
                    "error": str(e),
                    "event_count": len(events),
                }
            )
            return 0
