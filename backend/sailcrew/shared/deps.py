# sailcrew/shared/deps.py
"""
Dépendances FastAPI réutilisables dans tous les routers.
Injectées via Depends() : jamais appelées directement.

Les tokens sont émis par le service d'auth externe ; ici on ne fait que
les vérifier.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sailcrew.core.database import get_db
from sailcrew.core.security import decode_token
from sailcrew.shared.models import User, CrewProfile
from sailcrew.shared.enums import UserRole

bearer = HTTPBearer()


async def _get_user_from_token(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Token invalide ou expiré",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(credentials.credentials)
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise credentials_exception
    return user


# ── Deps publiques ─────────────────────────────────────────

async def get_current_user(
    user: Annotated[User, Depends(_get_user_from_token)],
) -> User:
    """Utilisateur authentifié (tout rôle)."""
    return user


async def get_current_crew(
    user: Annotated[User, Depends(_get_user_from_token)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CrewProfile:
    """Exige un CrewProfile."""
    result = await db.execute(select(CrewProfile).where(CrewProfile.user_id == user.id))
    crew = result.scalar_one_or_none()
    if not crew:
        raise HTTPException(status_code=403, detail="Profil marin requis")
    return crew


async def get_current_admin(
    user: Annotated[User, Depends(_get_user_from_token)],
) -> User:
    """Exige le rôle ADMIN (scheduler compris)."""
    if user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Accès administrateur requis")
    return user


# ── Type aliases pour les routers ─────────────────────────
DbDep    = Annotated[AsyncSession, Depends(get_db)]
UserDep  = Annotated[User, Depends(get_current_user)]
CrewDep  = Annotated[CrewProfile, Depends(get_current_crew)]
AdminDep = Annotated[User, Depends(get_current_admin)]
