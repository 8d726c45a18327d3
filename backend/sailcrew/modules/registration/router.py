# modules/registration/router.py
"""
Endpoints d'inscription à un leg.

POST /registrations retourne immédiatement (201) : l'évaluation tourne en
tâche de fond et le résultat se lit via GET /registrations/{id}.
"""
from fastapi import APIRouter, HTTPException, BackgroundTasks, status

from sailcrew.shared.deps import DbDep, UserDep, CrewDep
from sailcrew.shared.errors import AssessmentAlreadyRun, InvalidTransition
from sailcrew.modules.registration.service import RegistrationService
from sailcrew.modules.registration.schemas import (
    RegistrationCreateIn, RegistrationCreatedOut, RegistrationStatusOut, ReviewIn,
)

router = APIRouter(prefix="/registrations", tags=["Registrations"])
service = RegistrationService()


@router.post(
    "",
    response_model=RegistrationCreatedOut,
    status_code=status.HTTP_201_CREATED,
    summary="S'inscrire à un leg",
)
async def submit_registration(
    payload: RegistrationCreateIn,
    background_tasks: BackgroundTasks,
    db: DbDep,
    crew: CrewDep,
):
    try:
        registration = await service.submit(db, payload, crew, background_tasks)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leg introuvable.")
    except (AssessmentAlreadyRun, InvalidTransition) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"registration_id": registration.id, "status": registration.status}


@router.get("/{registration_id}", response_model=RegistrationStatusOut)
async def get_registration_status(registration_id: int, db: DbDep, current_user: UserDep):
    try:
        return await service.get_status(db, registration_id, current_user)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Inscription introuvable.")
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès refusé.")


@router.post(
    "/{registration_id}/review",
    response_model=RegistrationStatusOut,
    summary="Décision de l'owner (approve / deny)",
)
async def review_registration(registration_id: int, payload: ReviewIn, db: DbDep, current_user: UserDep):
    try:
        return await service.review(db, registration_id, payload, current_user)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Inscription introuvable.")
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès refusé.")
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/{registration_id}/cancel", response_model=RegistrationStatusOut)
async def cancel_registration(registration_id: int, db: DbDep, crew: CrewDep):
    try:
        return await service.cancel(db, registration_id, crew)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Inscription introuvable.")
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accès refusé.")
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
