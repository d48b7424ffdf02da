import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.busqueda import BusquedaPublicaRequest, BusquedaPublicaResponse
from app.services.busqueda_publica import busqueda_publica_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/documentos/buscar",
    response_model=BusquedaPublicaResponse,
    summary="Búsqueda pública de documentos aprobados",
    response_description="Constancias y resoluciones APROBADAS que coinciden con el término."
)
def buscar_documentos(
    *,
    db: Session = Depends(deps.get_db),
    data: BusquedaPublicaRequest,
) -> Any:
    """
    **Endpoint público.** Busca por nombre, código, DNI o número de documento.
    Con varias palabras también encuentra nombres escritos en otro orden.
    """
    resultado = busqueda_publica_service.search(db, query=data.query)
    logger.info(f"Búsqueda pública '{data.query}' devolvió {resultado.total} resultado(s).")
    return resultado
