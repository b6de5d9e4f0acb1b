"""
Middlewares et gestion centralisée des erreurs
"""
import logging
import os
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.responses import Response

from .services.errors import ServiceError

logger = logging.getLogger(__name__)


def debug_errors_enabled() -> bool:
    return os.getenv("DEBUG_ERRORS", "false").lower() in ("1", "true", "yes")


def server_error(e: Exception) -> HTTPException:
    """Construire la réponse 500 d'une écriture échouée (détail seulement si DEBUG_ERRORS)."""
    detail = f"Erreur serveur: {e}" if debug_errors_enabled() else "Erreur serveur"
    return HTTPException(status_code=500, detail=detail)


async def service_error_handler(request: Request, exc: ServiceError):
    """Traduire une erreur métier des services en réponse JSON avec son code HTTP."""
    if exc.status_code >= 500:
        logger.error(f"Erreur métier sur {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def error_handling_middleware(request: Request, call_next):
    """
    Middleware pour gérer les erreurs globalement et éviter les plantages
    """
    try:
        response = await call_next(request)
        return response
    except HTTPException as e:
        # Les HTTPException sont déjà gérées par FastAPI
        raise e
    except Exception as e:
        logger.exception(f"Erreur non gérée dans {request.url}: {str(e)}")

        # Pour les requêtes API, retourner du JSON
        if request.url.path.startswith("/api/"):
            detail = f"Erreur interne du serveur: {e}" if debug_errors_enabled() else "Erreur interne du serveur"
            return JSONResponse(
                status_code=500,
                content={"detail": detail}
            )

        # Pour les autres requêtes, retourner une erreur générique
        return Response(
            content="Erreur interne du serveur",
            status_code=500,
            media_type="text/plain"
        )
