import uuid
from typing import Optional, List, Dict
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict, model_validator

from app.schemas.enums import AccionPermisoEnum, ModoAsignacionEnum, RolUsuarioEnum

# ===============================================================
# Catálogo de permisos
# ===============================================================
class PermisoBase(BaseModel):
    """Campos base que definen un permiso en el sistema."""
    nombre: str = Field(..., min_length=3, max_length=100, description="Nombre legible del permiso")
    codigo: str = Field(
        ...,
        min_length=3,
        max_length=100,
        pattern=r"^[a-z0-9-]+(\.[a-z0-9-]+)+$",
        description="Código único (ej: users.access)"
    )
    descripcion: Optional[str] = Field(None, description="Descripción de lo que este permiso autoriza")
    modulo_id: Optional[uuid.UUID] = None
    submodulo_id: Optional[uuid.UUID] = None
    acciones: List[AccionPermisoEnum] = Field(
        default_factory=lambda: [AccionPermisoEnum.READ],
        description="Acciones que el permiso admite"
    )


class PermisoCreate(PermisoBase):
    pass


class PermisoUpdate(BaseModel):
    nombre: Optional[str] = Field(None, min_length=3, max_length=100)
    descripcion: Optional[str] = None
    modulo_id: Optional[uuid.UUID] = None
    submodulo_id: Optional[uuid.UUID] = None
    acciones: Optional[List[AccionPermisoEnum]] = None


class Permiso(PermisoBase):
    """Schema para devolver al cliente."""
    id: uuid.UUID
    codigo: str
    acciones: List[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ===============================================================
# Asignaciones usuario-permiso
# ===============================================================
class UsuarioPermiso(BaseModel):
    """Asignación activa de un permiso a un usuario."""
    id: uuid.UUID
    permiso: Permiso
    acciones: List[str]
    otorgado_por: Optional[uuid.UUID] = None
    otorgado_en: datetime
    expira_en: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PermisosUsuarioResponse(BaseModel):
    permisos: List[UsuarioPermiso]


class PermissionCheckRequest(BaseModel):
    permission_code: str = Field(..., min_length=1, description="Código del permiso a verificar")
    action: Optional[AccionPermisoEnum] = Field(None, description="Acción requerida; si se omite se verifica READ")


class PermissionCheckResponse(BaseModel):
    has_permission: bool


class PermisoAssignRequest(BaseModel):
    """
    Mutación masiva de asignaciones. El destino es un usuario (`usuario_id`) o todos
    los usuarios de un rol (`rol`).
    """
    usuario_id: Optional[uuid.UUID] = None
    rol: Optional[RolUsuarioEnum] = None
    permisos: List[uuid.UUID] = Field(..., min_length=1, description="IDs de los permisos")
    accion: ModoAsignacionEnum = Field(..., description="add | remove | set")
    acciones: Optional[List[AccionPermisoEnum]] = Field(None, description="Acciones a otorgar; por defecto READ")
    expira_en: Optional[datetime] = None

    @model_validator(mode="after")
    def destino_requerido(self):
        if self.usuario_id is None and self.rol is None:
            raise ValueError("Debe especificar un usuario o un rol")
        return self


class PermisoAssignResponse(BaseModel):
    msg: str
    usuarios_afectados: int


class PermisoBulkChange(BaseModel):
    """Conjunto de acciones de un permiso para un rol. Lista vacía = quitar el permiso."""
    rol: RolUsuarioEnum
    permiso_id: uuid.UUID
    acciones: List[AccionPermisoEnum]


class PermisoBulkUpdateRequest(BaseModel):
    cambios: List[PermisoBulkChange] = Field(..., min_length=1)


class PermisoBulkUpdateResponse(BaseModel):
    msg: str
    cambios_aplicados: int


class PermisoRolAsignado(BaseModel):
    permiso_id: uuid.UUID
    codigo: str
    acciones: List[str]


class PermisosPorRolResponse(BaseModel):
    permisos: List[Permiso]
    permisos_por_rol: Dict[str, List[PermisoRolAsignado]]
    usuarios_por_rol: Dict[str, int]
