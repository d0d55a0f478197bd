"""Email priorities, job kinds and the fixed queue weight table"""

import enum


class EmailPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class JobKind(str, enum.Enum):
    SEND_EMAIL = "send_email"
    SEND_SMS = "send_sms"
    REMINDER_TRIGGER = "reminder_trigger"


PRIORITY_WEIGHTS = {
    EmailPriority.CRITICAL: 10,
    EmailPriority.HIGH: 7,
    EmailPriority.NORMAL: 5,
    EmailPriority.LOW: 1,
}


def queue_weight(priority: EmailPriority) -> int:
    """Integer weight handed to the broker (higher is served first)"""
    return PRIORITY_WEIGHTS[EmailPriority(priority)]


def broker_priority(priority: EmailPriority) -> int:
    """Redis transport serves lower numbers first, so the weight is inverted"""
    return max(PRIORITY_WEIGHTS.values()) - queue_weight(priority)
