import logging
from typing import Optional, List, Iterable, Dict, Any, Sequence
from uuid import UUID
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import select, or_, func

from app.models.modulo import Modulo
from app.models.permiso import Permiso
from app.models.usuario import Usuario
from app.models.usuario_permiso import UsuarioPermiso
from app.schemas.enums import AccionPermisoEnum, ModoAsignacionEnum, RolUsuarioEnum
from app.schemas.permiso import PermisoCreate, PermisoUpdate, PermisoBulkChange

from .base_service import BaseService

logger = logging.getLogger(__name__)


def _action_value(accion: Optional[Any]) -> str:
    if accion is None:
        return AccionPermisoEnum.READ.value
    return getattr(accion, "value", accion)


def _grants_action(grant: UsuarioPermiso, accion: Optional[Any]) -> bool:
    """Sin acción explícita se exige READ."""
    return _action_value(accion) in (grant.acciones or [])


class PermisoService(BaseService[Permiso, PermisoCreate, PermisoUpdate]):
    """
    Servicio de permisos: verificación de asignaciones (solo lectura) y
    administración del catálogo y de las asignaciones usuario-permiso.

    Una asignación está activa si `expira_en` es nulo o posterior al instante
    de la consulta; las vencidas se ignoran en todas las consultas.
    """
    not_found_message = "Permiso no encontrado"

    # ------------------------------------------------------------------
    # Consultas de asignaciones activas
    # ------------------------------------------------------------------
    def _active_grants_statement(self, usuario_ids: Sequence[UUID], codigos: Optional[Iterable[str]] = None):
        now = datetime.now(timezone.utc)
        statement = (
            select(UsuarioPermiso)
            .join(Permiso, UsuarioPermiso.permiso_id == Permiso.id)
            .where(
                UsuarioPermiso.usuario_id.in_(list(usuario_ids)),
                or_(UsuarioPermiso.expira_en.is_(None), UsuarioPermiso.expira_en > now),
            )
        )
        if codigos is not None:
            statement = statement.where(Permiso.codigo.in_(list(codigos)))
        return statement

    def has_permission(self, db: Session, *, usuario_id: UUID, codigo: str, accion: Optional[Any] = None) -> bool:
        """True si el usuario tiene una asignación activa de `codigo` que incluye `accion` (READ por defecto)."""
        grant = db.execute(self._active_grants_statement([usuario_id], [codigo])).scalar_one_or_none()
        if grant is None:
            return False
        return _grants_action(grant, accion)

    def has_any_permission(
        self, db: Session, *, usuario_id: UUID, codigos: Iterable[str], accion: Optional[Any] = None
    ) -> bool:
        codigos = set(codigos)
        if not codigos:
            return False
        grants = db.execute(self._active_grants_statement([usuario_id], codigos)).scalars().all()
        return any(_grants_action(g, accion) for g in grants)

    def has_all_permissions(
        self, db: Session, *, usuario_id: UUID, codigos: Iterable[str], accion: Optional[Any] = None
    ) -> bool:
        """
        True si cada código distinto solicitado está cubierto por una asignación activa
        con la acción pedida. Los códigos repetidos cuentan una sola vez.
        """
        requeridos = set(codigos)
        if not requeridos:
            return True
        grants = db.execute(self._active_grants_statement([usuario_id], requeridos)).scalars().all()
        cubiertos = {g.permiso.codigo for g in grants if _grants_action(g, accion)}
        return cubiertos == requeridos

    def get_user_permissions(self, db: Session, *, usuario_id: UUID) -> List[UsuarioPermiso]:
        """Todas las asignaciones activas del usuario, sin filtrar por acción."""
        statement = self._active_grants_statement([usuario_id]).order_by(Permiso.codigo)
        return list(db.execute(statement).scalars().all())

    # ------------------------------------------------------------------
    # Catálogo
    # ------------------------------------------------------------------
    def get_by_codigo(self, db: Session, *, codigo: str) -> Optional[Permiso]:
        return db.execute(select(Permiso).where(Permiso.codigo == codigo)).scalar_one_or_none()

    def get_all_ordered(self, db: Session) -> List[Permiso]:
        """Catálogo ordenado por el orden del módulo y luego por nombre; los permisos sin módulo al final."""
        statement = (
            select(Permiso)
            .outerjoin(Modulo, Permiso.modulo_id == Modulo.id)
            .order_by(Modulo.orden.is_(None), Modulo.orden, Permiso.nombre)
        )
        return list(db.execute(statement).scalars().all())

    def create(self, db: Session, *, obj_in: PermisoCreate) -> Permiso:
        if self.get_by_codigo(db, codigo=obj_in.codigo):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Ya existe un permiso con ese código")
        data = obj_in.model_dump()
        data["acciones"] = [_action_value(a) for a in obj_in.acciones]
        db_obj = Permiso(**data)
        db.add(db_obj)
        logger.info(f"Permiso '{obj_in.codigo}' preparado para ser creado.")
        return db_obj

    def update(self, db: Session, *, db_obj: Permiso, obj_in: PermisoUpdate) -> Permiso:
        data = obj_in.model_dump(exclude_unset=True)
        if data.get("acciones") is not None:
            data["acciones"] = [_action_value(a) for a in data["acciones"]]
        return super().update(db, db_obj=db_obj, obj_in=data)

    def remove(self, db: Session, *, id: Any) -> Permiso:
        """Elimina el permiso y todas sus asignaciones. NO realiza db.commit()."""
        permiso = self.get_or_404(db, id=id)
        grants = db.execute(select(UsuarioPermiso).where(UsuarioPermiso.permiso_id == permiso.id)).scalars().all()
        self._delete_grants(db, grants, {g.usuario_id for g in grants})
        db.delete(permiso)
        logger.warning(f"Permiso '{permiso.codigo}' preparado para eliminación junto con {len(grants)} asignaciones.")
        return permiso

    def _ensure_exist(self, db: Session, permiso_ids: Iterable[UUID]) -> List[UUID]:
        ids = list(dict.fromkeys(permiso_ids))
        encontrados = db.execute(select(func.count(Permiso.id)).where(Permiso.id.in_(ids))).scalar_one()
        if encontrados != len(ids):
            logger.warning(f"Asignación con permisos inexistentes: {ids}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Algunos permisos no existen")
        return ids

    # ------------------------------------------------------------------
    # Asignaciones
    # ------------------------------------------------------------------
    def _existing_grants(self, db: Session, usuario_ids: Sequence[UUID], permiso_ids: Optional[Sequence[UUID]] = None) -> List[UsuarioPermiso]:
        statement = select(UsuarioPermiso).where(UsuarioPermiso.usuario_id.in_(list(usuario_ids)))
        if permiso_ids is not None:
            statement = statement.where(UsuarioPermiso.permiso_id.in_(list(permiso_ids)))
        return list(db.execute(statement).scalars().all())

    def _delete_grants(self, db: Session, grants: Iterable[UsuarioPermiso], usuario_ids: Iterable[UUID]) -> None:
        for grant in grants:
            db.delete(grant)
        # Los borrados deben llegar a la BD antes de reinsertar el mismo par (restricción única)
        db.flush()
        for usuario_id in usuario_ids:
            usuario = db.get(Usuario, usuario_id)
            if usuario is not None:
                db.expire(usuario, ["permisos_otorgados"])

    def user_ids_for_role(self, db: Session, *, rol: Any) -> List[UUID]:
        rol_value = getattr(rol, "value", rol)
        return list(db.execute(select(Usuario.id).where(Usuario.rol == rol_value)).scalars().all())

    def assign(
        self,
        db: Session,
        *,
        usuario_ids: Sequence[UUID],
        permiso_ids: Sequence[UUID],
        modo: ModoAsignacionEnum,
        otorgado_por: Optional[UUID],
        acciones: Optional[List[Any]] = None,
        expira_en: Optional[datetime] = None,
    ) -> int:
        """
        Agrega, quita o reemplaza asignaciones para un conjunto de usuarios.
        Devuelve la cantidad de usuarios afectados. NO realiza db.commit().
        """
        ids = self._ensure_exist(db, permiso_ids)
        acciones_valores = [_action_value(a) for a in acciones] if acciones else [AccionPermisoEnum.READ.value]
        usuario_ids = list(dict.fromkeys(usuario_ids))

        if modo == ModoAsignacionEnum.REMOVE:
            self._delete_grants(db, self._existing_grants(db, usuario_ids, ids), usuario_ids)
        else:
            if modo == ModoAsignacionEnum.SET:
                self._delete_grants(db, self._existing_grants(db, usuario_ids), usuario_ids)
                existentes = set()
            else:
                existentes = {(g.usuario_id, g.permiso_id) for g in self._existing_grants(db, usuario_ids, ids)}
            for usuario_id in usuario_ids:
                for permiso_id in ids:
                    if (usuario_id, permiso_id) in existentes:
                        continue
                    db.add(UsuarioPermiso(
                        usuario_id=usuario_id,
                        permiso_id=permiso_id,
                        acciones=list(acciones_valores),
                        otorgado_por=otorgado_por,
                        otorgado_en=datetime.now(timezone.utc),
                        expira_en=expira_en,
                    ))
            db.flush()

        logger.info(f"Asignación '{modo.value}' de {len(ids)} permisos aplicada a {len(usuario_ids)} usuarios por {otorgado_por}.")
        return len(usuario_ids)

    def bulk_update(self, db: Session, *, cambios: List[PermisoBulkChange], otorgado_por: Optional[UUID]) -> int:
        """
        Aplica a todos los usuarios de cada rol el conjunto de acciones indicado para un permiso.
        Una lista de acciones vacía elimina la asignación. NO realiza db.commit().
        """
        self._ensure_exist(db, [c.permiso_id for c in cambios])
        aplicados = 0
        for cambio in cambios:
            usuario_ids = self.user_ids_for_role(db, rol=cambio.rol)
            if not usuario_ids:
                continue
            grants = {g.usuario_id: g for g in self._existing_grants(db, usuario_ids, [cambio.permiso_id])}
            acciones = [_action_value(a) for a in dict.fromkeys(cambio.acciones)]
            if not acciones:
                self._delete_grants(db, grants.values(), usuario_ids)
            else:
                for usuario_id in usuario_ids:
                    grant = grants.get(usuario_id)
                    if grant is not None:
                        grant.acciones = list(acciones)
                        db.add(grant)
                    else:
                        db.add(UsuarioPermiso(
                            usuario_id=usuario_id,
                            permiso_id=cambio.permiso_id,
                            acciones=list(acciones),
                            otorgado_por=otorgado_por,
                            otorgado_en=datetime.now(timezone.utc),
                        ))
                db.flush()
            aplicados += 1
        logger.info(f"Actualización masiva de permisos: {aplicados} cambios aplicados por {otorgado_por}.")
        return aplicados

    def get_permissions_by_role(self, db: Session) -> Dict[str, Any]:
        """
        Catálogo completo, asignaciones activas por rol (tomadas de un usuario
        representativo de cada rol) y cantidad de usuarios por rol.
        """
        conteos = dict(db.execute(select(Usuario.rol, func.count(Usuario.id)).group_by(Usuario.rol)).all())
        permisos_por_rol: Dict[str, List[Dict[str, Any]]] = {}
        usuarios_por_rol: Dict[str, int] = {}
        for rol in RolUsuarioEnum:
            usuarios_por_rol[rol.value] = conteos.get(rol.value, 0)
            representante = db.execute(
                select(Usuario.id).where(Usuario.rol == rol.value).order_by(Usuario.created_at).limit(1)
            ).scalar_one_or_none()
            if representante is None:
                permisos_por_rol[rol.value] = []
                continue
            permisos_por_rol[rol.value] = [
                {"permiso_id": g.permiso_id, "codigo": g.permiso.codigo, "acciones": list(g.acciones or [])}
                for g in self.get_user_permissions(db, usuario_id=representante)
            ]
        return {
            "permisos": self.get_all_ordered(db),
            "permisos_por_rol": permisos_por_rol,
            "usuarios_por_rol": usuarios_por_rol,
        }

permiso_service = PermisoService(Permiso)
