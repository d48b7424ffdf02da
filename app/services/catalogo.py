import logging
from typing import Optional, List

from sqlalchemy.orm import Session
from sqlalchemy import select

from app.models.catalogo import Facultad, Departamento

logger = logging.getLogger(__name__)


class CatalogoService:
    """Catálogos de solo lectura usados por las resoluciones."""

    def get_facultades(self, db: Session) -> List[Facultad]:
        return list(db.execute(select(Facultad).order_by(Facultad.nombre)).scalars().all())

    def get_departamentos(self, db: Session, *, facultad_id: Optional[int] = None) -> List[Departamento]:
        statement = select(Departamento)
        if facultad_id is not None:
            statement = statement.where(Departamento.facultad_id == facultad_id)
        return list(db.execute(statement.order_by(Departamento.nombre)).scalars().all())

catalogo_service = CatalogoService()
