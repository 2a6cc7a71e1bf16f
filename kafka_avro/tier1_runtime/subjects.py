"""
kafka_avro.tier1_runtime.subjects
──────────────────────────────────
Subject naming strategies: map (topic, payload, key/value role) to the
registry subject a schema is looked up under.

  TopicNameStrategy        subject = <topic>               (default)
  RecordNameStrategy       subject = <recordName>
  TopicRecordNameStrategy  subject = <topic>-<recordName>

The record name is never inferred from the payload's Python class. Producers
attach it explicitly with ``tag_record()``; the tag is stripped before any
untyped serialization so it never reaches the wire.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from kafka_avro.tier0_core.errors import InvalidStrategyNameError, MissingRecordNameError

RECORD_NAME_TAG = "__record_name__"


class StrategyName(str, Enum):
    TOPIC_NAME = "TopicNameStrategy"
    RECORD_NAME = "RecordNameStrategy"
    TOPIC_RECORD_NAME = "TopicRecordNameStrategy"


def tag_record(payload: Mapping[str, Any], record_name: str) -> dict[str, Any]:
    """Return a copy of ``payload`` carrying ``record_name`` as its logical type."""
    return {**payload, RECORD_NAME_TAG: record_name}


def record_name_of(payload: Any) -> str | None:
    if isinstance(payload, Mapping):
        name = payload.get(RECORD_NAME_TAG)
        return name or None
    return None


def strip_record_tag(payload: Any) -> Any:
    """Return ``payload`` without the record tag; non-mappings pass through."""
    if isinstance(payload, Mapping) and RECORD_NAME_TAG in payload:
        return {k: v for k, v in payload.items() if k != RECORD_NAME_TAG}
    return payload


class SubjectNameStrategy:
    """
    Resolve registry subjects for produced payloads.

    Usage::

        strategy = SubjectNameStrategy("TopicRecordNameStrategy")
        strategy.prepare_subject_name("orders", tag_record(order, "Student"))
        # → "orders-Student"
    """

    def __init__(self, name: str | None = None) -> None:
        self.strategy = self._match(name) if name else StrategyName.TOPIC_NAME

    @staticmethod
    def _match(name: str) -> StrategyName:
        normalized = name.lower()
        for candidate in StrategyName:
            if candidate.value.lower() == normalized:
                return candidate
        raise InvalidStrategyNameError(name, [s.value for s in StrategyName])

    def prepare_subject_name(self, topic: str, payload: Any, is_key: bool = False) -> str:
        if self.strategy is StrategyName.TOPIC_NAME:
            return topic

        record_name = record_name_of(payload)
        if record_name is None:
            raise MissingRecordNameError(
                f"{self.strategy.value} needs a {RECORD_NAME_TAG!r} tag on the "
                f"{'key' if is_key else 'value'} payload for topic {topic!r}",
                topic=topic,
                strategy=self.strategy.value,
            )
        if self.strategy is StrategyName.RECORD_NAME:
            return record_name
        return f"{topic}-{record_name}"

    def __repr__(self) -> str:
        return f"SubjectNameStrategy({self.strategy.value!r})"


__all__ = [
    "RECORD_NAME_TAG",
    "StrategyName",
    "SubjectNameStrategy",
    "tag_record",
    "record_name_of",
    "strip_record_tag",
]
