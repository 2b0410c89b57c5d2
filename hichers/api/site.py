"""Public site endpoints: newsletter signup and contact form."""

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hichers.database import get_db
from hichers.models.newsletter import NewsletterSubscriber
from hichers.schemas.site import ContactMessage, NewsletterSignup, NewsletterSubscriberResponse

logger = structlog.get_logger()

router = APIRouter()


@router.post("/newsletter", response_model=NewsletterSubscriberResponse, status_code=201)
async def subscribe(
    signup: NewsletterSignup,
    db: AsyncSession = Depends(get_db),
):
    """Add an email to the newsletter list."""
    result = await db.execute(
        select(NewsletterSubscriber).where(NewsletterSubscriber.email == signup.email)
    )
    if result.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already subscribed")

    subscriber = NewsletterSubscriber(email=signup.email)
    db.add(subscriber)
    await db.flush()
    await db.refresh(subscriber)
    logger.info("Newsletter signup", subscriber_id=subscriber.id)
    return subscriber


@router.post("/contact")
async def contact(message: ContactMessage):
    logger.info("Contact form received", subject=message.subject)
    return {"message": "Message received"}
