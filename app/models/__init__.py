from .audit_log import AuditLog
from .catalogo import Facultad, Departamento
from .constancia import Constancia
from .modulo import Modulo, Submodulo
from .permiso import Permiso
from .resolucion import Resolucion, ResolucionEstudiante, ResolucionDocente, ResolucionArchivo
from .usuario import Usuario
from .usuario_permiso import UsuarioPermiso


__all__ = [
    "AuditLog",
    "Constancia",
    "Departamento",
    "Facultad",
    "Modulo",
    "Permiso",
    "Resolucion",
    "ResolucionArchivo",
    "ResolucionDocente",
    "ResolucionEstudiante",
    "Submodulo",
    "Usuario",
    "UsuarioPermiso",
]
