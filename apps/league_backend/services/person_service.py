"""
Person service: maps callers and invitees to canonical Person records.

People are deduplicated by normalized email first, then by external
identity subject id. Records are never deleted.
"""

import re
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from league_backend.database.models import Person
from league_backend.services.exceptions import ValidationError
from league_backend.utils.constants import DEFAULT_PERSON_NAME

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: Optional[str]) -> str:
    """Trim and lower-case an email address."""
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    """Loose syntactic email check."""
    return bool(_EMAIL_RE.match(email))


async def get_person_by_email(session: AsyncSession, email: str) -> Optional[Person]:
    result = await session.execute(
        select(Person).where(Person.email == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def get_person_by_subject(session: AsyncSession, subject_id: str) -> Optional[Person]:
    result = await session.execute(select(Person).where(Person.subject_id == subject_id))
    return result.scalar_one_or_none()


async def find_person_for_identity(
    session: AsyncSession, identity: Optional[dict]
) -> Optional[Person]:
    """
    Look up the Person for an authenticated caller without creating one.

    Subject id wins over email since emails can be re-linked.
    """
    if not identity:
        return None
    if identity.get("subject_id"):
        person = await get_person_by_subject(session, identity["subject_id"])
        if person:
            return person
    email = normalize_email(identity.get("email"))
    if email:
        return await get_person_by_email(session, email)
    return None


async def upsert_person(
    session: AsyncSession,
    name: str,
    email: str,
    subject_id: Optional[str] = None,
) -> Person:
    """
    Create or update a Person.

    Args:
        session: Database session
        name: Display name (required)
        email: Email address, normalized before lookup
        subject_id: Optional external identity subject to link

    Returns:
        The matching or newly created Person (flushed, not committed)

    Raises:
        ValidationError: If the name is blank or the email is invalid
    """
    email = normalize_email(email)
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required.")
    if not is_valid_email(email):
        raise ValidationError("Invalid email.")

    existing = await get_person_by_email(session, email)
    if existing:
        existing.name = name
        if subject_id and existing.subject_id != subject_id:
            # The subject may already sit on another record (e.g. email changed
            # at the identity provider); release it so the unique key holds.
            other = await get_person_by_subject(session, subject_id)
            if other and other.id != existing.id:
                other.subject_id = None
                await session.flush()
            existing.subject_id = subject_id
        await session.flush()
        return existing

    if subject_id:
        by_subject = await get_person_by_subject(session, subject_id)
        if by_subject:
            by_subject.name = name
            by_subject.email = email
            await session.flush()
            return by_subject

    person = Person(name=name, email=email, subject_id=subject_id)
    try:
        async with session.begin_nested():
            session.add(person)
    except IntegrityError:
        # Created concurrently under the same email; use that row
        existing = await get_person_by_email(session, email)
        if existing is None:
            raise
        existing.name = name
        await session.flush()
        return existing
    logger.info("Created person %d <%s>", person.id, email)
    return person


async def get_or_create_person_from_identity(
    session: AsyncSession, identity: dict
) -> Person:
    """
    Resolve the authenticated caller to a Person, creating it on first sight.

    Raises:
        ValidationError: If the identity carries no email
    """
    email = normalize_email(identity.get("email"))
    if not email:
        raise ValidationError("Signed in account is missing an email.")
    return await upsert_person(
        session,
        name=identity.get("name") or DEFAULT_PERSON_NAME,
        email=email,
        subject_id=identity.get("subject_id"),
    )


def person_to_dict(person: Optional[Person]) -> Optional[dict]:
    if person is None:
        return None
    return {
        "id": person.id,
        "name": person.name,
        "email": person.email,
        "subject_id": person.subject_id,
    }
