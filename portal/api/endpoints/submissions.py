# portal/api/endpoints/submissions.py

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.deps import get_current_user, get_db_session
from portal.api.endpoints.cards import load_card
from portal.core.rbac import is_admin
from portal.models.submission import Submission
from portal.models.user import User, UserType
from portal.schemas.submission import FileItemRead, MySubmissionRead
from portal.services.card_service import card_department_ids
from portal.services.submission_service import (
    create_submission,
    delete_submission,
    get_submission,
    list_for_card,
    list_for_user,
    to_file_items,
)

router = APIRouter(prefix="/submissions", tags=["Submissions"])


async def _can_manage(session: AsyncSession, submission: Submission, user: User) -> bool:
    """Owner, ADMIN, or the HEAD of a department the card belongs to."""
    if submission.user_id == user.id or is_admin(user):
        return True
    if user.user_type == UserType.HEAD and user.department_id is not None:
        return user.department_id in await card_department_ids(session, submission.card_id)
    return False


async def _load_submission(session: AsyncSession, submission_id: int, user: User) -> Submission:
    submission = await get_submission(session, submission_id)
    if not submission:
        raise HTTPException(404, "Submission not found")
    if not await _can_manage(session, submission, user):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not authorized for this submission")
    return submission


# ------------------------------------------------------------
# UPLOAD
# ------------------------------------------------------------
@router.post("/{card_id}", response_model=FileItemRead, status_code=status.HTTP_201_CREATED)
async def upload_submission(
    card_id: int,
    file: UploadFile = File(...),
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    type: Optional[str] = Form(default=None),
    departmentId: Optional[int] = Form(default=None),
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    card = await load_card(session, card_id, current_user)

    if departmentId is not None and departmentId not in await card_department_ids(session, card.id):
        raise HTTPException(400, "Card is not assigned to this department")

    try:
        submission = await create_submission(
            session,
            card,
            file,
            current_user,
            title=title,
            description=description,
            file_type=type,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))

    return (await to_file_items(session, [submission]))[0]


# ------------------------------------------------------------
# READ (fixed paths before /{card_id})
# ------------------------------------------------------------
@router.get("/my", response_model=List[MySubmissionRead])
async def my_submissions(
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    return await list_for_user(session, current_user)


@router.get("/details/{submission_id}", response_model=FileItemRead)
async def submission_details(
    submission_id: int,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    submission = await _load_submission(session, submission_id, current_user)
    return (await to_file_items(session, [submission]))[0]


@router.get("/{card_id}", response_model=List[FileItemRead])
async def card_submissions(
    card_id: int,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    card = await load_card(session, card_id, current_user)
    return await list_for_card(session, card.id)


# ------------------------------------------------------------
# DELETE
# ------------------------------------------------------------
@router.delete("/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_submission(
    submission_id: int,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    submission = await _load_submission(session, submission_id, current_user)
    await delete_submission(session, submission, current_user)
    return None
