import logging
from typing import Optional, Dict, Any

from .activity import Activity

# Get a logger instance for this module
logger = logging.getLogger(__name__)


def log_turn(
    activity: Activity,
    event: str,
    detail: Optional[Dict[str, Any]] = None,
    success: bool = True,
):
    """
    Logs a workflow step for one inbound activity with structured context.

    Args:
        activity: The inbound activity being handled.
        event: A dotted event name (e.g., 'ocr.consent.stale').
        detail: An optional dictionary for additional structured details.
        success: A boolean indicating if the step was successful.
    """
    conversation_id = activity.conversation_id or "unknown"
    user_id = activity.from_account.id if activity.from_account else None

    level = logging.INFO if success else logging.ERROR
    status_icon = "✔" if success else "✖"

    # Format the core log message with embedded context
    log_message = f"{status_icon} TURN [conv: {conversation_id}, user: {user_id}, type: {activity.type}] {event}"

    # If additional details are provided, append them for structured logging
    if detail:
        detail_str = ", ".join([f"{k}: {v}" for k, v in detail.items()])
        log_message += f" ({detail_str})"

    extra_context = {
        "subsys": "workflow",
        "conversation_id": conversation_id,
        "user_id": user_id,
        "activity_id": activity.id,
        "event": event,
        "detail": detail or {},
    }

    logger.log(level, log_message, extra=extra_context)
