from .common import Msg

# Token & Auth
from .token import Token, TokenPayload, RefreshToken

# Usuarios y Permisos
from .usuario import Usuario, UsuarioCreate, UsuarioUpdate, UsuarioRegister, UsuarioSimple
from .permiso import Permiso, PermisoCreate, PermisoUpdate, UsuarioPermiso
from .modulo import Modulo, ModuloCreate, ModuloUpdate, Submodulo, SubmoduloCreate, SubmoduloUpdate, NavegacionModulo

# Documentos
from .constancia import Constancia, ConstanciaCreate, ConstanciaUpdate
from .resolucion import Resolucion, ResolucionCreate, ResolucionUpdate
from .catalogo import Facultad, Departamento

# Auditoría
from .audit_log import AuditLog, AuditLogCreate
