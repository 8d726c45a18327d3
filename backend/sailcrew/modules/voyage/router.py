# modules/voyage/router.py
from fastapi import APIRouter, HTTPException, status

from sailcrew.shared.deps import DbDep, UserDep
from sailcrew.shared.errors import InvalidTransition
from sailcrew.modules.voyage.service import VoyageService
from sailcrew.modules.voyage.schemas import (
    RequirementCreateIn, RequirementOut, AutoApprovalIn, VoyageSettingsOut,
)

router = APIRouter(prefix="/voyages", tags=["Voyages"])
service = VoyageService()


@router.get("/{voyage_id}/requirements", response_model=list[RequirementOut])
async def list_requirements(voyage_id: int, db: DbDep, current_user: UserDep):
    try:
        return await service.list_requirements(db, voyage_id)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Voyage introuvable.")


@router.post(
    "/{voyage_id}/requirements",
    response_model=RequirementOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_requirement(voyage_id: int, payload: RequirementCreateIn, db: DbDep, current_user: UserDep):
    try:
        return await service.add_requirement(db, voyage_id, payload, current_user)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Voyage introuvable.")
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès refusé.")
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{voyage_id}/requirements/{requirement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_requirement(voyage_id: int, requirement_id: int, db: DbDep, current_user: UserDep):
    try:
        await service.delete_requirement(db, voyage_id, requirement_id, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès refusé.")
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.patch("/{voyage_id}/auto-approval", response_model=VoyageSettingsOut)
async def update_auto_approval(voyage_id: int, payload: AutoApprovalIn, db: DbDep, current_user: UserDep):
    try:
        return await service.update_auto_approval(db, voyage_id, payload, current_user)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Voyage introuvable.")
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès refusé.")
