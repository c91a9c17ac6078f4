"""
Home Page API Route

Anonymous, read-only headline numbers for the landing page.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.explore import PublicFeed


router = APIRouter(tags=["home"])


@router.get("/home", response_model=dict)
async def home_feed(db: Session = Depends(get_db)):
    return {"ok": True, "data": PublicFeed(db).home()}
