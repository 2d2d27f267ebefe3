from __future__ import annotations

import re

from quoteflow.domain.models import FormDraft, FormField

BUSINESS_ID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
# Permissive local@domain.tld shape, not RFC 5322.
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

REQUIRED_MESSAGES: dict[FormField, str] = {
    FormField.TITLE: "Title is required.",
    FormField.DESCRIPTION: "Description is required.",
    FormField.CONTACT_NAME: "Name is required.",
    FormField.CONTACT_EMAIL: "Email is required.",
}
INVALID_EMAIL_MESSAGE = "Check the email address."


def is_empty_or_whitespace(text: str | None) -> bool:
    return text is None or text.strip() == ""


def is_valid_email(email: str | None) -> bool:
    if is_empty_or_whitespace(email):
        return False
    return bool(EMAIL_RE.match(email.strip()))


def is_valid_business_id(value: str | None) -> bool:
    if not value:
        return False
    return bool(BUSINESS_ID_RE.match(value))


def validate_draft(draft: FormDraft, *, require_email: bool) -> dict[FormField, str]:
    """Return field errors for the draft; empty means valid.

    Phone and address are optional free text and never checked.
    """
    errors: dict[FormField, str] = {}
    for name in (FormField.TITLE, FormField.DESCRIPTION, FormField.CONTACT_NAME):
        if is_empty_or_whitespace(draft.get(name)):
            errors[name] = REQUIRED_MESSAGES[name]

    if require_email:
        email = draft.contact_email
        if is_empty_or_whitespace(email):
            errors[FormField.CONTACT_EMAIL] = REQUIRED_MESSAGES[FormField.CONTACT_EMAIL]
        elif not is_valid_email(email):
            errors[FormField.CONTACT_EMAIL] = INVALID_EMAIL_MESSAGE

    return errors


def visible_errors(
    errors: dict[FormField, str],
    *,
    touched: set[FormField],
    submit_attempted: bool,
) -> dict[FormField, str]:
    # Errors are always computed but only shown after blur or a submit attempt.
    if submit_attempted:
        return dict(errors)
    return {name: message for name, message in errors.items() if name in touched}
