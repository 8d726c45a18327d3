# modules/matching/router.py
"""
Matching proactif.

POST /matching/batches est appelé par le scheduler (compte admin) ; le
batch tourne dans la requête et retourne son rapport.
"""
from dataclasses import asdict

from fastapi import APIRouter, HTTPException, BackgroundTasks, status

from sailcrew.shared.deps import DbDep, UserDep, AdminDep
from sailcrew.shared.errors import InvalidTransition
from sailcrew.modules.matching.service import MatchingService
from sailcrew.modules.matching.schemas import BatchRunIn, BatchReportOut, MatchOut, MatchRespondIn

router = APIRouter(prefix="/matching", tags=["Matching"])
service = MatchingService()


@router.post("/batches", response_model=BatchReportOut, summary="Lancer un batch de matching")
async def run_matching_batch(payload: BatchRunIn, admin: AdminDep):
    report = await service.run_batch(payload.as_of)
    return asdict(report)


@router.get("/me", response_model=list[MatchOut])
async def my_matches(db: DbDep, current_user: UserDep):
    return await service.list_for_crew(db, current_user)


@router.get("/legs/{leg_id}", response_model=list[MatchOut])
async def leg_matches(leg_id: int, db: DbDep, current_user: UserDep):
    try:
        return await service.list_for_leg(db, leg_id, current_user)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leg introuvable.")
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès refusé.")


@router.post("/{match_id}/respond", response_model=MatchOut)
async def respond_to_match(
    match_id: int,
    payload: MatchRespondIn,
    background_tasks: BackgroundTasks,
    db: DbDep,
    current_user: UserDep,
):
    try:
        return await service.respond(db, match_id, payload.response, current_user, background_tasks)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Match introuvable.")
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès refusé.")
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
