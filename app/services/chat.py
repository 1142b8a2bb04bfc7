from datetime import datetime, timezone
import uuid

from ..schemas import ChatMessage

GREETING = (
    "Hi! I'm your personal styling assistant. I can help you find the perfect outfit "
    "for any occasion. What are you looking for today?"
)

REPLY_TEMPLATE = (
    'Great! Based on your request for "{request}", I\'d recommend checking out some of our '
    "latest collections. Let me show you some options that match your style!"
)


def _message(role: str, content: str) -> ChatMessage:
    return ChatMessage(id=str(uuid.uuid4()), role=role, content=content, timestamp=datetime.now(timezone.utc))


def greeting() -> ChatMessage:
    return _message("assistant", GREETING)


def reply_to(message: str) -> ChatMessage:
    # Scripted assistant: no model call
    return _message("assistant", REPLY_TEMPLATE.format(request=message.strip()))
