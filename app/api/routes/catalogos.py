import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api import deps
from app.models.usuario import Usuario as UsuarioModel
from app.schemas.catalogo import Facultad, Departamento
from app.services.catalogo import catalogo_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/facultades", response_model=List[Facultad], summary="Listar facultades")
def read_facultades(
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    return catalogo_service.get_facultades(db)


@router.get("/departamentos", response_model=List[Departamento], summary="Listar departamentos académicos")
def read_departamentos(
    db: Session = Depends(deps.get_db),
    facultad_id: Optional[int] = Query(None, description="Solo los departamentos de esta facultad"),
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    return catalogo_service.get_departamentos(db, facultad_id=facultad_id)
