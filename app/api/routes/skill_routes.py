"""
Skill Routes

GET /skills - Popular skills, or prefix search with ?q=
POST /skills - Add a catalog entry (admin only)
POST /users/me/skills - Add skill to own profile
DELETE /users/me/skills/{name} - Remove skill from own profile
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth import get_current_user, require_admin
from app.services.mongo_service import serialize_doc, serialize_docs
from app.services.skill_service import get_skill_service
from app.schemas.schemas import SkillCreate, SkillAdd, SkillResponse, MessageResponse

router = APIRouter(tags=["Skills"])


@router.get("/skills", response_model=List[SkillResponse])
async def list_skills(
    q: Optional[str] = Query(None, description="Name prefix"),
    limit: int = Query(20, ge=1, le=100)
):
    service = get_skill_service()
    if q:
        return serialize_docs(service.search(q, limit))
    return serialize_docs(service.list_popular(limit))


@router.post("/skills", response_model=SkillResponse, status_code=201)
async def create_skill(request: SkillCreate, admin: dict = Depends(require_admin)):
    return serialize_doc(get_skill_service().upsert(request.name, request.category))


@router.post("/users/me/skills", response_model=SkillResponse)
async def add_my_skill(request: SkillAdd, user: dict = Depends(get_current_user)):
    return serialize_doc(get_skill_service().add_to_user(user["user_id"], request.name))


@router.delete("/users/me/skills/{name}", response_model=MessageResponse)
async def remove_my_skill(name: str, user: dict = Depends(get_current_user)):
    get_skill_service().remove_from_user(user["user_id"], name)
    return MessageResponse(message=f"Skill {name} removed")
