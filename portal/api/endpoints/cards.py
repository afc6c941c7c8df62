# portal/api/endpoints/cards.py

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.deps import get_current_user, get_db_session
from portal.core.rbac import AllowRoles, ensure_department_access, ensure_sole_department, is_admin
from portal.models.card import Card
from portal.models.user import User, UserType
from portal.schemas.card import CardAnalytics, CardCreate, CardDetail, CardRead, CardUpdate, UserStatus
from portal.schemas.submission import FileListResponse
from portal.services.card_service import (
    analytics,
    card_department_ids,
    create_card,
    delete_card,
    get_card,
    list_cards,
    to_card_read,
    to_card_reads,
    update_card,
    user_status,
)
from portal.services.file_listing import (
    ALL_TYPES,
    FileQuery,
    count_owned_by,
    filter_files,
    paginate,
    type_options,
)
from portal.services.submission_service import list_for_card

router = APIRouter(prefix="/cards", tags=["Cards"])


async def load_card(session: AsyncSession, card_id: int, user: User) -> Card:
    """404 for a missing card, 403 when it is not linked to the user's department."""
    card = await get_card(session, card_id)
    if not card:
        raise HTTPException(404, "Card not found")
    ensure_department_access(user, await card_department_ids(session, card.id))
    return card


async def load_managed_card(session: AsyncSession, card_id: int, user: User) -> Card:
    """load_card plus the rule that a HEAD only changes cards owned by their department alone."""
    card = await load_card(session, card_id, user)
    ensure_sole_department(user, await card_department_ids(session, card.id))
    return card


# ------------------------------------------------------------
# LIST / CREATE
# ------------------------------------------------------------
@router.get("", response_model=List[CardRead])
async def get_cards(
    department_id: Optional[int] = Query(default=None, alias="departmentId"),
    search: Optional[str] = None,
    sort: str = "recent",
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    # HEAD/STAFF only ever see their own department's cards
    if not is_admin(current_user):
        if current_user.department_id is None:
            return []
        department_id = current_user.department_id

    try:
        cards = await list_cards(session, department_id=department_id, search=search, sort=sort)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return await to_card_reads(session, cards)


@router.post("", response_model=CardRead, status_code=status.HTTP_201_CREATED)
async def create_card_endpoint(
    data: CardCreate,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(AllowRoles(UserType.HEAD)),
):
    try:
        card = await create_card(session, data, current_user)
    except PermissionError as e:
        raise HTTPException(status.HTTP_403_FORBIDDEN, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    return await to_card_read(session, card)


@router.get("/analytics", response_model=CardAnalytics)
async def get_analytics(
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(AllowRoles(UserType.ADMIN)),
):
    return await analytics(session)


# ------------------------------------------------------------
# SINGLE CARD
# ------------------------------------------------------------
@router.get("/{card_id}", response_model=CardDetail)
async def get_card_endpoint(
    card_id: int,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    card = await load_card(session, card_id, current_user)
    read = await to_card_read(session, card)
    return CardDetail(**read.model_dump(), files=await list_for_card(session, card.id))


@router.get("/{card_id}/files", response_model=FileListResponse)
async def get_card_files(
    card_id: int,
    q: str = "",
    type: str = ALL_TYPES,
    sort: str = "recent",
    direction: str = "desc",
    mine: bool = False,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=200),
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    card = await load_card(session, card_id, current_user)

    try:
        criteria = FileQuery(query=q, type_filter=type, sort_by=sort, direction=direction, mine_only=mine)
    except ValueError as e:
        raise HTTPException(400, str(e))

    files = await list_for_card(session, card.id)
    filtered = filter_files(files, criteria, current_user)
    result = paginate(filtered, page, page_size)

    return FileListResponse(
        files=result.items,
        total=len(files),
        filtered=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
        type_options=type_options(files),
        my_count=count_owned_by(files, current_user),
    )


@router.get("/{card_id}/status", response_model=UserStatus)
async def get_card_status(
    card_id: int,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(AllowRoles(UserType.HEAD)),
):
    card = await load_card(session, card_id, current_user)
    department_id = None if is_admin(current_user) else current_user.department_id
    return await user_status(session, card, department_id=department_id)


@router.put("/{card_id}", response_model=CardRead)
async def update_card_endpoint(
    card_id: int,
    data: CardUpdate,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(AllowRoles(UserType.HEAD)),
):
    card = await load_managed_card(session, card_id, current_user)

    try:
        card = await update_card(session, card, data, current_user)
    except PermissionError as e:
        raise HTTPException(status.HTTP_403_FORBIDDEN, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    return await to_card_read(session, card)


@router.delete("/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_card_endpoint(
    card_id: int,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(AllowRoles(UserType.HEAD)),
):
    card = await load_managed_card(session, card_id, current_user)
    await delete_card(session, card, current_user)
    return None
