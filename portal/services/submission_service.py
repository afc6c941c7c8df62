# portal/services/submission_service.py

from typing import Iterable, List, Optional

from fastapi import UploadFile
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from portal.core.storage import delete_stored_file, extension_of, get_file_url, save_upload
from portal.models.card import Card
from portal.models.enums import ActivityAction
from portal.models.submission import Submission
from portal.models.user import User
from portal.schemas.submission import FileItemRead, FileOwner, MySubmissionRead
from portal.services.activity_service import log_activity
from portal.services.card_service import is_expired

DEFAULT_FILE_TYPE = "Document"


def allowed_extensions(card: Card) -> List[str]:
    if not card.allowed_file_types:
        return []
    return [t for t in card.allowed_file_types.split(",") if t]


def check_upload_allowed(card: Card, filename: Optional[str]) -> None:
    if is_expired(card):
        raise ValueError("This card has expired and no longer accepts uploads")

    allowed = allowed_extensions(card)
    if allowed and extension_of(filename) not in allowed:
        raise ValueError(f"File type not allowed. Allowed types: {', '.join(allowed)}")


# ============================================================================
# LOOKUPS + SHAPING
# ============================================================================
async def get_submission(session: AsyncSession, submission_id: int) -> Optional[Submission]:
    result = await session.execute(select(Submission).where(Submission.id == submission_id))
    return result.scalar_one_or_none()


async def to_file_items(session: AsyncSession, submissions: Iterable[Submission]) -> List[FileItemRead]:
    submissions = list(submissions)
    owner_ids = {s.user_id for s in submissions}
    owners = {}
    if owner_ids:
        res = await session.execute(select(User).where(User.id.in_(owner_ids)))
        owners = {u.id: u for u in res.scalars().all()}

    items = []
    for s in submissions:
        owner = owners.get(s.user_id)
        items.append(FileItemRead(
            id=s.id,
            card_id=s.card_id,
            title=s.title,
            description=s.description,
            name=s.name,
            type=s.type,
            size=s.size,
            path=s.path,
            url=get_file_url(s.path),
            mime_type=s.mime_type,
            created_at=s.created_at,
            updated_at=s.updated_at,
            user=FileOwner.model_validate(owner) if owner else None,
        ))
    return items


async def list_for_card(session: AsyncSession, card_id: int) -> List[FileItemRead]:
    result = await session.execute(
        select(Submission)
        .where(Submission.card_id == card_id)
        .order_by(Submission.created_at.desc(), Submission.id.desc())
    )
    return await to_file_items(session, result.scalars().all())


async def list_for_user(session: AsyncSession, user: User) -> List[MySubmissionRead]:
    result = await session.execute(
        select(Submission, Card.title)
        .join(Card, Card.id == Submission.card_id)
        .where(Submission.user_id == user.id)
        .order_by(Submission.created_at.desc(), Submission.id.desc())
    )
    rows = result.all()
    items = await to_file_items(session, [s for s, _ in rows])
    return [
        MySubmissionRead(**item.model_dump(), card_title=title)
        for item, (_, title) in zip(items, rows)
    ]


# ============================================================================
# CREATE / DELETE
# ============================================================================
async def create_submission(
    session: AsyncSession,
    card: Card,
    file: UploadFile,
    owner: User,
    title: Optional[str] = None,
    description: Optional[str] = None,
    file_type: Optional[str] = None,
) -> Submission:
    check_upload_allowed(card, file.filename)

    stored = await save_upload(file, f"cards/{card.id}")

    submission = Submission(
        card_id=card.id,
        user_id=owner.id,
        title=(title or "").strip() or file.filename or "Untitled",
        description=description,
        name=file.filename or "file",
        type=(file_type or "").strip() or DEFAULT_FILE_TYPE,
        size=stored.size,
        path=stored.path,
        mime_type=stored.mime_type,
    )
    session.add(submission)

    try:
        await session.commit()
        await session.refresh(submission)
    except IntegrityError:
        await session.rollback()
        delete_stored_file(stored.path)
        raise ValueError("Failed to save submission")

    logger.info(f"{owner.username} uploaded {submission.name} ({submission.size} bytes) to card {card.id}")
    await log_activity(
        session,
        ActivityAction.FILE_UPLOADED,
        owner,
        description=f"Uploaded {submission.name} to {card.title}",
        card_id=card.id,
        details={"submission_id": submission.id, "size": submission.size},
    )
    return submission


async def delete_submission(session: AsyncSession, submission: Submission, actor: User) -> None:
    path, name, card_id = submission.path, submission.name, submission.card_id

    await session.delete(submission)
    await session.commit()
    delete_stored_file(path)

    await log_activity(
        session,
        ActivityAction.FILE_DELETED,
        actor,
        description=f"Deleted {name}",
        card_id=card_id,
    )
