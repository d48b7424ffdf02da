import sys
from os.path import abspath, dirname

root_dir = dirname(dirname(abspath(__file__)))
sys.path.append(root_dir)

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.password import get_password_hash
from app.core.permissions import (
    PERM_DASHBOARD, PERM_USERS, PERM_ROLES, PERM_SETTINGS, PERM_CONSTANCIAS, PERM_RESOLUCIONES,
    SUPER_ADMIN_ROLE,
)
from app.db.session import SessionLocal
from app.models.catalogo import Facultad, Departamento
from app.models.modulo import Modulo, Submodulo
from app.models.permiso import Permiso
from app.models.usuario import Usuario
from app.schemas.enums import TipoModuloEnum

TODAS_LAS_ACCIONES = ["READ", "CREATE", "UPDATE", "DELETE", "EXPORT"]

# (slug, nombre, descripcion, icono, tipo, orden, [(slug, nombre, icono, orden), ...])
MODULOS = [
    ("dashboard", "Dashboard", "Panel principal y estadísticas", "LayoutDashboard", TipoModuloEnum.CORE, 1, []),
    ("users", "Gestión de Usuarios", "Administración de usuarios y permisos", "Users", TipoModuloEnum.CORE, 2, [
        ("users-list", "Lista de Usuarios", "UserCog", 1),
        ("roles-permissions", "Roles y Permisos", "Shield", 2),
    ]),
    ("documents", "Documentos", "Constancias y resoluciones", "FileText", TipoModuloEnum.FEATURE, 3, [
        ("constancias", "Constancias", "FileCheck", 1),
        ("resoluciones", "Resoluciones", "ScrollText", 2),
    ]),
    ("settings", "Configuración", "Configuración del sistema", "Settings", TipoModuloEnum.CORE, 99, []),
]

# (codigo, nombre, modulo_slug, submodulo_slug)
PERMISOS = [
    (PERM_DASHBOARD, "Acceso al Dashboard", "dashboard", None),
    (PERM_USERS, "Gestión de usuarios", "users", "users-list"),
    (PERM_ROLES, "Roles y permisos", "users", "roles-permissions"),
    (PERM_CONSTANCIAS, "Constancias", "documents", "constancias"),
    (PERM_RESOLUCIONES, "Resoluciones", "documents", "resoluciones"),
    (PERM_SETTINGS, "Configuración", "settings", None),
]

FACULTADES = {
    "Facultad de Ingeniería": [
        "Departamento Académico de Ingeniería de Sistemas e Informática",
        "Departamento Académico de Ingeniería Forestal y Medio Ambiente",
        "Departamento Académico de Ingeniería Agroindustrial",
    ],
    "Facultad de Educación": [
        "Departamento Académico de Educación y Humanidades",
    ],
    "Facultad de Ecoturismo": [
        "Departamento Académico de Ecoturismo",
        "Departamento Académico de Ciencias Contables y Financieras",
        "Departamento Académico de Administración y Negocios Internacionales",
    ],
    "Facultad de Ciencias de la Salud": [
        "Departamento Académico de Enfermería",
        "Departamento Académico de Medicina Veterinaria y Zootecnia",
    ],
}


def seed_superuser(db: Session) -> None:
    if not settings.SUPERUSER_PASSWORD:
        print("!!! ERROR: Define SUPERUSER_PASSWORD en tu archivo .env para crear el superusuario. !!!")
        return
    if db.execute(select(Usuario).where(Usuario.email == settings.SUPERUSER_EMAIL)).scalar_one_or_none():
        print(f"El superusuario '{settings.SUPERUSER_EMAIL}' ya existe.")
        return
    db.add(Usuario(
        email=settings.SUPERUSER_EMAIL,
        nombre="Super Admin",
        hashed_password=get_password_hash(settings.SUPERUSER_PASSWORD),
        rol=SUPER_ADMIN_ROLE,
        activo=True,
        email_verificado=datetime.now(timezone.utc),
        intentos_fallidos=0,
        bloqueado=False,
    ))
    print(f"Superusuario '{settings.SUPERUSER_EMAIL}' creado.")


def seed_modulos(db: Session) -> dict:
    """Crea los módulos que falten y devuelve {slug: (modulo, {sub_slug: submodulo})}."""
    indice = {}
    for slug, nombre, descripcion, icono, tipo, orden, submodulos in MODULOS:
        modulo = db.execute(select(Modulo).where(Modulo.slug == slug)).scalar_one_or_none()
        if not modulo:
            modulo = Modulo(
                slug=slug, nombre=nombre, descripcion=descripcion, icono=icono,
                tipo=tipo.value, orden=orden, activo=True,
            )
            db.add(modulo)
            db.flush()
            print(f"Módulo '{slug}' creado.")
        subs = {s.slug: s for s in modulo.submodulos}
        for sub_slug, sub_nombre, sub_icono, sub_orden in submodulos:
            if sub_slug not in subs:
                sub = Submodulo(
                    modulo_id=modulo.id, slug=sub_slug, nombre=sub_nombre,
                    icono=sub_icono, orden=sub_orden, activo=True,
                )
                db.add(sub)
                db.flush()
                subs[sub_slug] = sub
                print(f"  Submódulo '{slug}/{sub_slug}' creado.")
        indice[slug] = (modulo, subs)
    return indice


def seed_permisos(db: Session, indice: dict) -> None:
    for codigo, nombre, modulo_slug, submodulo_slug in PERMISOS:
        if db.execute(select(Permiso).where(Permiso.codigo == codigo)).scalar_one_or_none():
            continue
        modulo, subs = indice[modulo_slug]
        db.add(Permiso(
            codigo=codigo,
            nombre=nombre,
            modulo_id=modulo.id,
            submodulo_id=subs[submodulo_slug].id if submodulo_slug else None,
            acciones=list(TODAS_LAS_ACCIONES),
        ))
        print(f"Permiso '{codigo}' creado.")


def seed_catalogos(db: Session) -> None:
    for nombre_facultad, departamentos in FACULTADES.items():
        facultad = db.execute(select(Facultad).where(Facultad.nombre == nombre_facultad)).scalar_one_or_none()
        if not facultad:
            facultad = Facultad(nombre=nombre_facultad)
            db.add(facultad)
            db.flush()
            print(f"Facultad '{nombre_facultad}' creada.")
        existentes = {d.nombre for d in facultad.departamentos}
        for nombre in departamentos:
            if nombre not in existentes:
                db.add(Departamento(nombre=nombre, facultad_id=facultad.id))


def seed():
    """
    Carga idempotente de los datos iniciales: superusuario, módulos de navegación,
    catálogo de permisos y catálogos académicos.
    """
    db: Session = SessionLocal()
    print("--- Iniciando carga de datos iniciales ---")
    try:
        seed_superuser(db)
        indice = seed_modulos(db)
        seed_permisos(db, indice)
        seed_catalogos(db)
        db.commit()
        print("¡Datos iniciales cargados exitosamente!")
    except Exception as e:
        print(f"Ocurrió un error: {e}")
        db.rollback()
        raise
    finally:
        print("--- Script finalizado ---")
        db.close()


if __name__ == "__main__":
    seed()
