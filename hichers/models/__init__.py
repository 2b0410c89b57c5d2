"""SQLAlchemy models."""

from hichers.models.newsletter import NewsletterSubscriber

__all__ = [
    "NewsletterSubscriber",
]
