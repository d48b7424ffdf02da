from enum import Enum

class RolUsuarioEnum(str, Enum):
    """Rol grueso del usuario. Solo SUPER_ADMIN omite las verificaciones de permisos."""
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    USER = "USER"

class AccionPermisoEnum(str, Enum):
    """Acciones que puede otorgar un permiso."""
    READ = "READ"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    EXPORT = "EXPORT"

class TipoModuloEnum(str, Enum):
    CORE = "CORE"
    FEATURE = "FEATURE"
    PLUGIN = "PLUGIN"

class EstadoDocumentoEnum(str, Enum):
    """Estados del flujo de aprobación de constancias y resoluciones."""
    PENDIENTE = "PENDIENTE"
    APROBADO = "APROBADO"
    RECHAZADO = "RECHAZADO"

class TipoArchivoResolucionEnum(str, Enum):
    RESOLUCION = "resolucion"
    ANEXO = "anexo"

class ModoAsignacionEnum(str, Enum):
    """Modo de mutación de las asignaciones de permisos."""
    ADD = "add"
    REMOVE = "remove"
    SET = "set"
