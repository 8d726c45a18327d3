# sailcrew/infra/storage.py
"""
Lecture des documents du coffre (stockage local, simulation S3).

Aucun accès direct : read_document() n'est appelé qu'APRÈS validation
d'un grant par modules/documents/service.py::validate_grant().
"""
import os

import structlog

from sailcrew.core.config import settings

logger = structlog.get_logger(__name__)


def _resolve(file_path: str) -> str:
    root = os.path.abspath(settings.DOCUMENT_STORAGE_DIR)
    full = os.path.abspath(os.path.join(root, file_path))
    # Pas de sortie du coffre via ../
    if os.path.commonpath([root, full]) != root:
        raise PermissionError("Chemin de document hors du coffre")
    return full


def read_document(file_path: str) -> bytes:
    full = _resolve(file_path)
    with open(full, "rb") as fh:
        data = fh.read()
    logger.info("storage.document_read", size=len(data))
    return data
