import logging
from typing import Optional, List, Dict, Any, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import select, or_

from app.core.permissions import is_superuser
from app.models.catalogo import Facultad, Departamento
from app.models.resolucion import Resolucion, ResolucionEstudiante, ResolucionDocente, ResolucionArchivo
from app.models.usuario import Usuario
from app.schemas.enums import EstadoDocumentoEnum, TipoArchivoResolucionEnum
from app.schemas.resolucion import ResolucionCreate, ResolucionUpdate

from .base_service import BaseService

logger = logging.getLogger(__name__)

RESOLUCION_FIELDS = (
    "tipo_resolucion", "numero_resolucion", "fecha_resolucion", "modalidad", "es_financiado",
    "tipo_financiamiento", "monto", "dni_asesor", "nombre_asesor", "titulo_proyecto",
    "facultad_id", "departamento_id",
)


def build_archivo(archivo: Dict[str, Any]) -> ResolucionArchivo:
    """El PDF es el documento de la resolución; cualquier imagen se guarda como anexo."""
    tipo = (
        TipoArchivoResolucionEnum.RESOLUCION
        if archivo["mime_type"] == "application/pdf"
        else TipoArchivoResolucionEnum.ANEXO
    )
    return ResolucionArchivo(
        nombre_archivo=archivo["filename"],
        url_archivo=archivo["url"],
        tamano_archivo=archivo["size"],
        mime_type=archivo["mime_type"],
        tipo=tipo.value,
    )


class ResolucionService(BaseService[Resolucion, ResolucionCreate, ResolucionUpdate]):
    """
    CRUD de resoluciones con sus estudiantes, docentes y archivos.
    Los métodos NO realizan commit ni tocan el disco.
    """
    not_found_message = "Resolución no encontrada"

    def get_by_numero(self, db: Session, *, numero: str) -> Optional[Resolucion]:
        return db.execute(select(Resolucion).where(Resolucion.numero_resolucion == numero)).scalar_one_or_none()

    def get_multi_filtered(
        self,
        db: Session,
        *,
        skip: int = 0,
        limit: int = 100,
        estado: Optional[EstadoDocumentoEnum] = None,
        tipo_resolucion: Optional[str] = None,
        facultad_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> List[Resolucion]:
        statement = select(Resolucion)
        if estado:
            statement = statement.where(Resolucion.estado == estado.value)
        if tipo_resolucion:
            statement = statement.where(Resolucion.tipo_resolucion == tipo_resolucion)
        if facultad_id:
            statement = statement.where(Resolucion.facultad_id == facultad_id)
        if search:
            term = f"%{search.strip()}%"
            estudiante_match = (
                select(ResolucionEstudiante.resolucion_id)
                .where(or_(
                    ResolucionEstudiante.nombres.ilike(term),
                    ResolucionEstudiante.apellidos.ilike(term),
                    ResolucionEstudiante.dni.ilike(term),
                    ResolucionEstudiante.codigo.ilike(term),
                ))
            )
            statement = statement.where(or_(
                Resolucion.numero_resolucion.ilike(term),
                Resolucion.titulo_proyecto.ilike(term),
                Resolucion.nombre_asesor.ilike(term),
                Resolucion.id.in_(estudiante_match),
            ))
        statement = statement.order_by(Resolucion.created_at.desc()).offset(skip).limit(limit)
        return list(db.execute(statement).scalars().all())

    def _check_catalogos(self, db: Session, facultad_id: Optional[int], departamento_id: Optional[int]) -> None:
        if facultad_id is not None and db.get(Facultad, facultad_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Facultad no encontrada")
        if departamento_id is not None and db.get(Departamento, departamento_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Departamento no encontrado")

    def create(
        self,
        db: Session,
        *,
        obj_in: ResolucionCreate,
        creado_por_id: Optional[UUID] = None,
        archivos: Optional[List[Dict[str, Any]]] = None,
    ) -> Resolucion:
        if self.get_by_numero(db, numero=obj_in.numero_resolucion):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El número de resolución ya existe")
        self._check_catalogos(db, obj_in.facultad_id, obj_in.departamento_id)

        db_obj = Resolucion(
            **obj_in.model_dump(include=set(RESOLUCION_FIELDS)),
            estado=EstadoDocumentoEnum.PENDIENTE.value,
            creado_por_id=creado_por_id,
        )
        db_obj.estudiantes = [ResolucionEstudiante(**e.model_dump()) for e in obj_in.estudiantes]
        db_obj.docentes = [ResolucionDocente(**d.model_dump()) for d in obj_in.docentes]
        db_obj.archivos = [build_archivo(a) for a in (archivos or [])]
        db.add(db_obj)
        logger.info(
            f"Resolución '{obj_in.numero_resolucion}' preparada para ser creada con "
            f"{len(db_obj.estudiantes)} estudiantes, {len(db_obj.docentes)} docentes y {len(db_obj.archivos)} archivos."
        )
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: Resolucion,
        obj_in: ResolucionUpdate,
        actor: Optional[Usuario] = None,
        archivos: Optional[List[Dict[str, Any]]] = None,
    ) -> Tuple[Resolucion, List[str]]:
        """
        Reemplaza los datos, estudiantes y docentes de la resolución, agrega los archivos
        nuevos y quita los indicados en `archivos_a_eliminar`.
        Devuelve la resolución y las URLs de los archivos quitados, para que la ruta los borre del disco.
        """
        if db_obj.estado == EstadoDocumentoEnum.APROBADO.value and not is_superuser(actor):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No se puede editar una resolución aprobada")
        if obj_in.numero_resolucion != db_obj.numero_resolucion and self.get_by_numero(db, numero=obj_in.numero_resolucion):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El número de resolución ya existe")
        self._check_catalogos(db, obj_in.facultad_id, obj_in.departamento_id)

        for field in RESOLUCION_FIELDS:
            setattr(db_obj, field, getattr(obj_in, field))

        db_obj.estudiantes = [ResolucionEstudiante(**e.model_dump()) for e in obj_in.estudiantes]
        db_obj.docentes = [ResolucionDocente(**d.model_dump()) for d in obj_in.docentes]

        a_eliminar = set(obj_in.archivos_a_eliminar)
        urls_eliminadas = [a.url_archivo for a in db_obj.archivos if a.id in a_eliminar]
        conservados = [a for a in db_obj.archivos if a.id not in a_eliminar]
        db_obj.archivos = conservados + [build_archivo(a) for a in (archivos or [])]

        db.add(db_obj)
        logger.info(f"Resolución {db_obj.id} preparada para actualización ({len(urls_eliminadas)} archivos quitados).")
        return db_obj, urls_eliminadas

    def remove(self, db: Session, *, id: Any) -> Resolucion:
        resolucion = self.get_or_404(db, id=id)
        if resolucion.estado == EstadoDocumentoEnum.APROBADO.value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No se puede eliminar una resolución aprobada")
        db.delete(resolucion)
        logger.warning(f"Resolución '{resolucion.numero_resolucion}' preparada para eliminación.")
        return resolucion

resolucion_service = ResolucionService(Resolucion)
