from typing import Optional, List

from fastapi import APIRouter, Depends

from ..auth.security import get_current_user
from ..crud import DatabaseStorage, get_storage
from ..schemas.profiles import ProfileResponse


router = APIRouter(prefix="/api/montadores", tags=["montadores"])


@router.get("", response_model=List[ProfileResponse])
def list_montadores(
    region: Optional[str] = None,
    skill: Optional[str] = None,
    storage: DatabaseStorage = Depends(get_storage),
    _=Depends(get_current_user),
):
    rows = storage.list_profiles(role="montador", exclude_status="blocked", region=region)
    if skill:
        wanted = skill.strip().lower()
        # skills is a JSON list; filter here to stay portable across SQLite and Postgres
        rows = [p for p in rows if wanted in [s.lower() for s in (p.skills or [])]]
    return rows
