"""
Message templates and placeholder rendering.

Templates are data: the defaults below can be overridden per type from a
JSON file (see ``MESSAGE_TEMPLATES_PATH``).
"""

import json
import re
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from salon_recovery.errors import ValidationError
from salon_recovery.logging_config import get_logger
from salon_recovery.models import MessageTemplate, MessageType

logger = get_logger(__name__)

PLACEHOLDER = re.compile(r"\{(\w+)\}")

DEFAULT_TEMPLATES = {
    MessageType.FOLLOW_UP: MessageTemplate(
        subject="How was your recent appointment?",
        body=(
            "Hi {client_name},\n\n"
            "Thank you for visiting {salon_name}! We hope you're enjoying your new look. "
            "How was your experience with {stylist_name}?\n\n"
            "We'd love to hear your feedback and see you again soon!\n\n"
            "Best regards,\nThe {salon_name} Team"
        ),
    ),
    MessageType.REMINDER: MessageTemplate(
        subject="Time for your next appointment?",
        body=(
            "Hi {client_name},\n\n"
            "It's been about {days_since} days since your last appointment with us. "
            "Your {service_name} might be due for a refresh!\n\n"
            "Would you like to schedule your next visit? We have some great openings next week.\n\n"
            "Best regards,\nThe {salon_name} Team"
        ),
    ),
    MessageType.TIP: MessageTemplate(
        subject="A tip for maintaining your style",
        body=(
            "Hi {client_name},\n\n"
            "We hope you're enjoying your recent {service_name} from {salon_name}!\n\n"
            "Here's a quick tip to help maintain your look: {tip_content}\n\n"
            "Feel free to reach out if you have any questions!\n\n"
            "Best regards,\nThe {salon_name} Team"
        ),
    ),
    MessageType.PROMOTION: MessageTemplate(
        subject="Special offer just for you!",
        body=(
            "Hi {client_name},\n\n"
            "As a valued client at {salon_name}, we'd like to offer you a special promotion: "
            "{promotion_details}\n\n"
            "This offer is valid until {expiry_date}. We hope to see you soon!\n\n"
            "Best regards,\nThe {salon_name} Team"
        ),
    ),
    MessageType.REACTIVATION: MessageTemplate(
        subject="We miss you at {salon_name}!",
        body=(
            "Hi {client_name},\n\n"
            "It's been a while since we've seen you at {salon_name}! "
            "We miss having you in our chair and would love to welcome you back.\n\n"
            "As a special thank you for your past business, we'd like to offer you "
            "{reactivation_offer} on your next visit.\n\n"
            "Hope to see you soon!\n\n"
            "Best regards,\nThe {salon_name} Team"
        ),
    ),
}


def render(template: str, data: Mapping[str, Any]) -> str:
    """
    Replace each ``{key}`` with ``str(data[key])``.

    Placeholders without a value are left as they are. Substitution is a
    single pass, so values containing braces are not expanded again.
    """
    def substitute(match: re.Match) -> str:
        key = match.group(1)
        if key in data and data[key] is not None:
            return str(data[key])
        return match.group(0)

    return PLACEHOLDER.sub(substitute, template)


class TemplateCatalog:
    """Read-only lookup of the template for each message type."""

    def __init__(self, overrides: Optional[Mapping[MessageType, MessageTemplate]] = None):
        self._templates = dict(DEFAULT_TEMPLATES)
        self._templates.update(overrides or {})

    @classmethod
    def from_file(cls, path: Optional[str]) -> "TemplateCatalog":
        """
        Load overrides from a JSON object keyed by message type, e.g.
        ``{"followUp": {"subject": "...", "body": "..."}}``.
        Types missing from the file keep their default text.
        """
        if not path:
            return cls()

        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValidationError(f"Could not load message templates from {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ValidationError(f"Message templates file {path} must contain a JSON object")

        overrides = {}
        for key, value in raw.items():
            try:
                overrides[MessageType(key)] = MessageTemplate.model_validate(value)
            except ValueError as e:
                # pydantic's ValidationError is a ValueError too
                detail = e.errors()[0]["msg"] if isinstance(e, PydanticValidationError) else str(e)
                raise ValidationError(f"Invalid template '{key}' in {path}: {detail}") from e

        logger.info("message_templates_loaded", path=path, overridden=sorted(t.value for t in overrides))
        return cls(overrides)

    def get(self, message_type: MessageType) -> MessageTemplate:
        return self._templates[MessageType(message_type)]

    def render(self, message_type: MessageType, data: Mapping[str, Any]) -> MessageTemplate:
        """Rendered subject and body for one message type."""
        template = self.get(message_type)
        return MessageTemplate(subject=render(template.subject, data), body=render(template.body, data))

    def as_dict(self) -> dict[str, dict[str, str]]:
        return {message_type.value: template.to_wire() for message_type, template in self._templates.items()}
