"""
Módulo de Servicios

Este paquete contiene la lógica de negocio y las interacciones
con la base de datos para las diferentes entidades de la aplicación.

Cada módulo define un servicio (usualmente una instancia de una clase)
que encapsula las operaciones CRUD y específicas para un modelo ORM.
"""

# Importar instancias de servicio para facilitar el acceso
from .usuario import usuario_service
from .permiso import permiso_service
from .modulo import modulo_service, submodulo_service
from .constancia import constancia_service
from .resolucion import resolucion_service
from .catalogo import catalogo_service
from .busqueda_publica import busqueda_publica_service
from .registro_academico import registro_academico_service
from .audit_log import audit_log_service

__all__ = [
    "usuario_service",
    "permiso_service",
    "modulo_service",
    "submodulo_service",
    "constancia_service",
    "resolucion_service",
    "catalogo_service",
    "busqueda_publica_service",
    "registro_academico_service",
    "audit_log_service",
]
