"""
Access evaluation: is a topic accessible to a user right now?

A topic is accessible when
1. the topic is free, or
2. a direct enrollment is paid / completed / free, or
3. a completed bundle enrollment exists for its category and either the topic
   existed when the bundle was paid for, or the bundle includes future topics.

A direct enrollment stuck in pending/failed does not hide bundle access: the
bundle is still consulted.

Inputs are plain objects (ORM rows work) exposing the attributes used below.
Everything here is a pure function of its inputs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Set

from academy.utils.dt import as_utc_aware

GRANTING_ENROLLMENT_STATUSES = frozenset({"paid", "completed", "free"})
COMPLETED_BUNDLE_STATUS = "completed"


class AccessType(str, Enum):
    FREE = "free"
    INDIVIDUAL = "individual"
    BUNDLE = "bundle"
    NONE = "none"


class AccessReason(str, Enum):
    FREE_TOPIC = "FREE_TOPIC"
    PURCHASED = "PURCHASED"
    ENROLLED_FREE = "ENROLLED_FREE"
    BUNDLE = "BUNDLE"
    BUNDLE_FUTURE_TOPIC = "BUNDLE_FUTURE_TOPIC"
    TOPIC_ADDED_AFTER_BUNDLE = "TOPIC_ADDED_AFTER_BUNDLE"
    INVALID_ENROLLMENT = "INVALID_ENROLLMENT"
    NO_PURCHASE = "NO_PURCHASE"


@dataclass(frozen=True)
class AccessDecision:
    has_access: bool
    access_type: AccessType
    reason: AccessReason


def enrollment_grants_access(enrollment) -> bool:
    return enrollment is not None and enrollment.payment_status in GRANTING_ENROLLMENT_STATUSES


def _bundle_covers(topic, bundle) -> Optional[AccessReason]:
    """Reason the bundle grants the topic, or None if it does not."""
    if bundle is None or bundle.payment_status != COMPLETED_BUNDLE_STATUS:
        return None

    enrolled_at = as_utc_aware(bundle.enrolled_at)
    created_at = as_utc_aware(topic.created_at)
    if enrolled_at is not None and created_at is not None and created_at <= enrolled_at:
        return AccessReason.BUNDLE
    if bundle.future_topics_included:
        return AccessReason.BUNDLE_FUTURE_TOPIC
    return None


def validate_topic_access(topic, enrollment=None, bundle=None) -> AccessDecision:
    """
    Decide access for one topic.

    Args:
        topic: object with is_free and created_at
        enrollment: the user's direct enrollment row for the topic, or None
        bundle: the user's bundle enrollment row for the topic's category, or None

    Returns:
        AccessDecision; absence of access is a normal result, never raised
    """
    if topic.is_free:
        return AccessDecision(True, AccessType.FREE, AccessReason.FREE_TOPIC)

    if enrollment_grants_access(enrollment):
        reason = AccessReason.ENROLLED_FREE if enrollment.payment_status == "free" else AccessReason.PURCHASED
        return AccessDecision(True, AccessType.INDIVIDUAL, reason)

    bundle_reason = _bundle_covers(topic, bundle)
    if bundle_reason is not None:
        return AccessDecision(True, AccessType.BUNDLE, bundle_reason)

    if enrollment is not None:
        return AccessDecision(False, AccessType.INDIVIDUAL, AccessReason.INVALID_ENROLLMENT)

    if bundle is not None and bundle.payment_status == COMPLETED_BUNDLE_STATUS:
        return AccessDecision(False, AccessType.BUNDLE, AccessReason.TOPIC_ADDED_AFTER_BUNDLE)

    return AccessDecision(False, AccessType.NONE, AccessReason.NO_PURCHASE)


def accessible_topic_ids(topics: Iterable, enrollments: Iterable = (), bundle=None) -> Set:
    """
    Set of topic ids in a category the user can open.

    Union of topics covered by a completed bundle and topics with a granting
    direct enrollment (restricted to the given topics).
    """
    topics = list(topics)
    in_category = {t.id for t in topics}

    accessible = {t.id for t in topics if _bundle_covers(t, bundle) is not None}
    accessible.update(
        e.topic_id
        for e in enrollments
        if e.topic_id in in_category and enrollment_grants_access(e)
    )
    return accessible
