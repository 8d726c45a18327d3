# main.py
"""
Point d'entrée de l'API SailCrew.
Enregistre tous les modules via leurs routers.

Architecture : modules verticaux quasi-autonomes + engine transversal
(pipeline d'évaluation, scoring IA, matching).
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sailcrew.core.config import settings
from sailcrew.core.logging import configure_logging

from sailcrew.modules.registration.router import router as registration_router
from sailcrew.modules.documents.router    import router as documents_router
from sailcrew.modules.voyage.router       import router as voyage_router
from sailcrew.modules.matching.router     import router as matching_router

configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(registration_router)
app.include_router(documents_router)
app.include_router(voyage_router)
app.include_router(matching_router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
