# modules/documents/router.py
"""
Endpoints du coffre documents : grants et journal d'accès.
Toutes les opérations sont réservées au propriétaire du document.
"""
from fastapi import APIRouter, HTTPException, status

from sailcrew.shared.deps import DbDep, UserDep
from sailcrew.modules.documents.service import DocumentService
from sailcrew.modules.documents.schemas import GrantCreateIn, GrantOut, AccessLogOut

router = APIRouter(tags=["Documents"])
service = DocumentService()


@router.post(
    "/documents/{document_id}/grants",
    response_model=GrantOut,
    status_code=status.HTTP_201_CREATED,
    summary="Créer un accès temporaire à un document",
)
async def create_grant(document_id: int, payload: GrantCreateIn, db: DbDep, current_user: UserDep):
    try:
        return await service.create_grant(db, document_id, payload, current_user)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document introuvable.")
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès refusé.")
    except ValueError as e:
        if str(e) == "ACTIVE_GRANT_EXISTS":
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/documents/{document_id}/grants", response_model=list[GrantOut])
async def list_grants(document_id: int, db: DbDep, current_user: UserDep):
    try:
        return await service.list_grants(db, document_id, current_user)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document introuvable.")
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès refusé.")


@router.post("/grants/{grant_id}/revoke", response_model=GrantOut)
async def revoke_grant(grant_id: int, db: DbDep, current_user: UserDep):
    try:
        return await service.revoke_grant(db, grant_id, current_user)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Grant introuvable.")
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès refusé.")


@router.get(
    "/documents/{document_id}/access-log",
    response_model=list[AccessLogOut],
    summary="Journal d'accès (lecture seule)",
)
async def get_access_log(document_id: int, db: DbDep, current_user: UserDep):
    try:
        return await service.get_access_log(db, document_id, current_user)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document introuvable.")
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès refusé.")
