from fastapi import APIRouter

# Importar los routers individuales de cada módulo
from . import auth, usuarios, permisos, modulos, submodulos, auditoria
from . import constancias, resoluciones, catalogos, archivos, publico, registro

# Crear el router principal de la API
api_router = APIRouter()

# Incluir cada router individual con su prefijo y etiquetas
api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(usuarios.router, prefix="/users", tags=["Usuarios"])
api_router.include_router(permisos.router, prefix="/permissions", tags=["Permisos"])
api_router.include_router(modulos.router, prefix="/modules", tags=["Módulos"])
api_router.include_router(submodulos.router, prefix="/submodules", tags=["Módulos"])
api_router.include_router(constancias.router, prefix="/documents/constancias", tags=["Constancias"])
api_router.include_router(resoluciones.router, prefix="/documents/resoluciones", tags=["Resoluciones"])
api_router.include_router(catalogos.router, prefix="/documents/catalogos", tags=["Catálogos"])
api_router.include_router(archivos.documents_router, prefix="/documents/files", tags=["Archivos"])
api_router.include_router(archivos.router, prefix="/files", tags=["Archivos"])
api_router.include_router(publico.router, prefix="/public", tags=["Público"])
api_router.include_router(registro.student_router, prefix="/student", tags=["Registro Académico"])
api_router.include_router(registro.teacher_router, prefix="/teacher", tags=["Registro Académico"])
api_router.include_router(auditoria.router, prefix="/audit-logs", tags=["Auditoría"])
