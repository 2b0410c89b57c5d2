"""Schemas for the public newsletter and contact forms."""

import re
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _check_email(value: str) -> str:
    value = value.strip().lower()
    if not _EMAIL_RE.match(value):
        raise ValueError("Invalid email format")
    return value


Email = Annotated[str, AfterValidator(_check_email)]


class NewsletterSignup(BaseModel):
    email: Email


class NewsletterSubscriberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    date_subscribed: datetime


class ContactMessage(BaseModel):
    name: str = Field(min_length=1)
    email: Email
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)
