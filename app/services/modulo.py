import logging
from typing import Optional, List, Dict, Set, Any
from uuid import UUID
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import select, or_, func

from app.core.icons import resolve_icon
from app.core.permissions import is_superuser
from app.models.modulo import Modulo, Submodulo
from app.models.permiso import Permiso
from app.models.usuario import Usuario
from app.models.usuario_permiso import UsuarioPermiso
from app.schemas.modulo import (
    ModuloCreate, ModuloUpdate, SubmoduloCreate, SubmoduloUpdate,
    NavegacionModulo, NavegacionSubmodulo,
)

from .base_service import BaseService

logger = logging.getLogger(__name__)


def _submodulo_node(modulo: Modulo, submodulo: Submodulo) -> NavegacionSubmodulo:
    return NavegacionSubmodulo(
        id=submodulo.id,
        nombre=submodulo.nombre,
        slug=submodulo.slug,
        icono=resolve_icon(submodulo.icono),
        orden=submodulo.orden,
        url=f"/{modulo.slug}/{submodulo.slug}",
    )


def _modulo_node(modulo: Modulo, submodulos: List[Submodulo]) -> NavegacionModulo:
    return NavegacionModulo(
        id=modulo.id,
        nombre=modulo.nombre,
        slug=modulo.slug,
        descripcion=modulo.descripcion,
        icono=resolve_icon(modulo.icono),
        tipo=modulo.tipo,
        orden=modulo.orden,
        url=f"/{modulo.slug}",
        submodulos=[_submodulo_node(modulo, s) for s in sorted(submodulos, key=lambda s: s.orden)],
    )


class ModuloService(BaseService[Modulo, ModuloCreate, ModuloUpdate]):
    not_found_message = "Módulo no encontrado"

    def get_by_slug(self, db: Session, *, slug: str) -> Optional[Modulo]:
        return db.execute(select(Modulo).where(Modulo.slug == slug)).scalar_one_or_none()

    def get_multi_ordered(self, db: Session, *, solo_activos: bool = False) -> List[Modulo]:
        statement = select(Modulo)
        if solo_activos:
            statement = statement.where(Modulo.activo.is_(True))
        return list(db.execute(statement.order_by(Modulo.orden, Modulo.nombre)).scalars().all())

    def get_user_modules(self, db: Session, *, usuario: Usuario) -> List[NavegacionModulo]:
        """
        Árbol de navegación visible para `usuario`.

        El superusuario ve todos los módulos y submódulos activos. El resto ve los
        módulos activos alcanzados por alguna asignación vigente (directamente o a
        través del submódulo del permiso) y, dentro de ellos, solo los submódulos
        activos cubiertos por permisos de submódulo. La acción otorgada no influye.
        """
        if is_superuser(usuario):
            return [
                _modulo_node(m, [s for s in m.submodulos if s.activo])
                for m in self.get_multi_ordered(db, solo_activos=True)
            ]

        now = datetime.now(timezone.utc)
        statement = (
            select(Permiso)
            .join(UsuarioPermiso, UsuarioPermiso.permiso_id == Permiso.id)
            .where(
                UsuarioPermiso.usuario_id == usuario.id,
                or_(UsuarioPermiso.expira_en.is_(None), UsuarioPermiso.expira_en > now),
            )
        )
        permisos = db.execute(statement).scalars().all()

        modulo_ids: Set[UUID] = set()
        submodulo_ids: Set[UUID] = set()
        for permiso in permisos:
            if permiso.submodulo_id is not None:
                submodulo_ids.add(permiso.submodulo_id)
                if permiso.submodulo is not None:
                    modulo_ids.add(permiso.submodulo.modulo_id)
            if permiso.modulo_id is not None:
                modulo_ids.add(permiso.modulo_id)

        if not modulo_ids:
            logger.debug(f"Usuario {usuario.id} sin módulos visibles.")
            return []

        modulos = db.execute(
            select(Modulo)
            .where(Modulo.id.in_(modulo_ids), Modulo.activo.is_(True))
            .order_by(Modulo.orden, Modulo.nombre)
        ).scalars().all()

        return [
            _modulo_node(m, [s for s in m.submodulos if s.activo and s.id in submodulo_ids])
            for m in modulos
        ]

    def _next_orden(self, db: Session) -> int:
        return (db.execute(select(func.max(Modulo.orden))).scalar_one_or_none() or 0) + 1

    def create(self, db: Session, *, obj_in: ModuloCreate) -> Modulo:
        if self.get_by_slug(db, slug=obj_in.slug):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El slug ya está en uso")
        data = obj_in.model_dump()
        data["tipo"] = obj_in.tipo.value
        if not data["orden"]:
            data["orden"] = self._next_orden(db)
        db_obj = Modulo(**data)
        db.add(db_obj)
        logger.info(f"Módulo '{obj_in.slug}' preparado para ser creado (orden {data['orden']}).")
        return db_obj

    def update(self, db: Session, *, db_obj: Modulo, obj_in: ModuloUpdate) -> Modulo:
        data = obj_in.model_dump(exclude_unset=True)
        if data.get("slug") and data["slug"] != db_obj.slug and self.get_by_slug(db, slug=data["slug"]):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El slug ya está en uso")
        if data.get("tipo") is not None:
            data["tipo"] = data["tipo"].value
        return super().update(db, db_obj=db_obj, obj_in=data)

    def remove(self, db: Session, *, id: Any) -> Modulo:
        modulo = self.get_or_404(db, id=id)
        if modulo.submodulos or modulo.permisos:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No se puede eliminar un módulo con submódulos o permisos asociados",
            )
        db.delete(modulo)
        logger.warning(f"Módulo '{modulo.slug}' preparado para eliminación.")
        return modulo


class SubmoduloService(BaseService[Submodulo, SubmoduloCreate, SubmoduloUpdate]):
    not_found_message = "Submódulo no encontrado"

    def _slug_taken(self, db: Session, *, modulo_id: UUID, slug: str, exclude_id: Optional[UUID] = None) -> bool:
        statement = select(Submodulo.id).where(Submodulo.modulo_id == modulo_id, Submodulo.slug == slug)
        if exclude_id is not None:
            statement = statement.where(Submodulo.id != exclude_id)
        return db.execute(statement).first() is not None

    def create(self, db: Session, *, obj_in: SubmoduloCreate) -> Submodulo:
        modulo = modulo_service.get_or_404(db, id=obj_in.modulo_id)
        if self._slug_taken(db, modulo_id=modulo.id, slug=obj_in.slug):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El slug ya está en uso en este módulo")
        data = obj_in.model_dump()
        if not data["orden"]:
            maximo = db.execute(
                select(func.max(Submodulo.orden)).where(Submodulo.modulo_id == modulo.id)
            ).scalar_one_or_none()
            data["orden"] = (maximo or 0) + 1
        db_obj = Submodulo(**data)
        db.add(db_obj)
        logger.info(f"Submódulo '{modulo.slug}/{obj_in.slug}' preparado para ser creado.")
        return db_obj

    def update(self, db: Session, *, db_obj: Submodulo, obj_in: SubmoduloUpdate) -> Submodulo:
        data: Dict[str, Any] = obj_in.model_dump(exclude_unset=True)
        if data.get("slug") and self._slug_taken(db, modulo_id=db_obj.modulo_id, slug=data["slug"], exclude_id=db_obj.id):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El slug ya está en uso en este módulo")
        return super().update(db, db_obj=db_obj, obj_in=data)

    def remove(self, db: Session, *, id: Any) -> Submodulo:
        submodulo = self.get_or_404(db, id=id)
        if submodulo.permisos:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No se puede eliminar un submódulo con permisos asociados",
            )
        db.delete(submodulo)
        logger.warning(f"Submódulo '{submodulo.slug}' preparado para eliminación.")
        return submodulo


modulo_service = ModuloService(Modulo)
submodulo_service = SubmoduloService(Submodulo)
