"""User directory: used by clients to pick task assignees."""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db.engine import get_db
from taskhive.db.models import User
from taskhive.schemas.user import UserRead

router = APIRouter()


@router.get("/users", response_model=list[UserRead])
async def list_users(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).order_by(User.name.asc()))
    return result.scalars().all()
