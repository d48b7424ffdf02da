import logging
from typing import Optional, List, Dict, Any
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import select, or_

from app.core.permissions import is_superuser
from app.models.constancia import Constancia
from app.models.usuario import Usuario
from app.schemas.constancia import ConstanciaCreate, ConstanciaUpdate
from app.schemas.enums import EstadoDocumentoEnum

from .base_service import BaseService

logger = logging.getLogger(__name__)


def _file_fields(archivo: Dict[str, Any]) -> Dict[str, Any]:
    """Metadatos devueltos por `save_upload_file` -> columnas de la constancia."""
    return {
        "nombre_archivo": archivo["filename"],
        "url_archivo": archivo["url"],
        "tamano_archivo": archivo["size"],
        "mime_type": archivo["mime_type"],
    }


class ConstanciaService(BaseService[Constancia, ConstanciaCreate, ConstanciaUpdate]):
    """
    CRUD de constancias. El borrado físico de archivos lo hace la ruta
    después del commit; aquí solo se actualizan los metadatos.
    """
    not_found_message = "Constancia no encontrada"

    def get_by_numero(self, db: Session, *, numero: str) -> Optional[Constancia]:
        return db.execute(select(Constancia).where(Constancia.numero_constancia == numero)).scalar_one_or_none()

    def get_multi_filtered(
        self,
        db: Session,
        *,
        skip: int = 0,
        limit: int = 100,
        estado: Optional[EstadoDocumentoEnum] = None,
        anio: Optional[int] = None,
        search: Optional[str] = None,
    ) -> List[Constancia]:
        statement = select(Constancia)
        if estado:
            statement = statement.where(Constancia.estado == estado.value)
        if anio:
            statement = statement.where(Constancia.anio == anio)
        if search:
            term = f"%{search.strip()}%"
            statement = statement.where(or_(
                Constancia.nombre_completo.ilike(term),
                Constancia.dni.ilike(term),
                Constancia.codigo_estudiante.ilike(term),
                Constancia.numero_constancia.ilike(term),
            ))
        statement = statement.order_by(Constancia.created_at.desc()).offset(skip).limit(limit)
        return list(db.execute(statement).scalars().all())

    def create(
        self,
        db: Session,
        *,
        obj_in: ConstanciaCreate,
        creado_por_id: Optional[UUID] = None,
        archivo: Optional[Dict[str, Any]] = None,
    ) -> Constancia:
        if self.get_by_numero(db, numero=obj_in.numero_constancia):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El número de constancia ya existe")
        data = obj_in.model_dump()
        if archivo:
            data.update(_file_fields(archivo))
        db_obj = Constancia(**data, creado_por_id=creado_por_id, estado=EstadoDocumentoEnum.PENDIENTE.value)
        db.add(db_obj)
        logger.info(f"Constancia '{obj_in.numero_constancia}' preparada para ser creada por {creado_por_id}.")
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: Constancia,
        obj_in: ConstanciaUpdate,
        actor: Optional[Usuario] = None,
        archivo: Optional[Dict[str, Any]] = None,
    ) -> Constancia:
        """
        Solo el superusuario puede editar una constancia aprobada.
        Si llega `archivo`, reemplaza los metadatos del archivo anterior.
        """
        if db_obj.estado == EstadoDocumentoEnum.APROBADO.value and not is_superuser(actor):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No se puede editar una constancia aprobada")
        data = obj_in.model_dump(exclude_unset=True)
        nuevo_numero = data.get("numero_constancia")
        if nuevo_numero and nuevo_numero != db_obj.numero_constancia and self.get_by_numero(db, numero=nuevo_numero):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El número de constancia ya existe")
        if archivo:
            data.update(_file_fields(archivo))
        return super().update(db, db_obj=db_obj, obj_in=data)

    def remove(self, db: Session, *, id: Any) -> Constancia:
        constancia = self.get_or_404(db, id=id)
        if constancia.estado == EstadoDocumentoEnum.APROBADO.value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No se puede eliminar una constancia aprobada")
        db.delete(constancia)
        logger.warning(f"Constancia '{constancia.numero_constancia}' preparada para eliminación.")
        return constancia

constancia_service = ConstanciaService(Constancia)
