"""
Creación inicial del portal administrativo

Revision ID: b71c3e9a0d52
Revises:
Create Date: 2026-10-17 10:12:31.104882

Descripción:
Usuarios, módulos y submódulos de navegación, catálogo de permisos con sus
asignaciones por usuario, catálogos académicos, constancias, resoluciones
(estudiantes, docentes y archivos) y el log de auditoría de la aplicación.
Los datos iniciales se cargan con `scripts/seed_data.py`.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'b71c3e9a0d52'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    # === Usuarios ===
    op.create_table('usuarios',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('nombre', sa.String(length=150), nullable=False),
        sa.Column('contrasena', sa.String(), nullable=False),
        sa.Column('rol', sa.String(length=20), nullable=False),
        sa.Column('activo', sa.Boolean(), nullable=False),
        sa.Column('email_verificado', sa.DateTime(timezone=True), nullable=True),
        sa.Column('token_verificacion', sa.String(length=128), nullable=True),
        sa.Column('token_reseteo', sa.String(length=128), nullable=True),
        sa.Column('token_reseteo_expiracion', sa.DateTime(timezone=True), nullable=True),
        sa.Column('intentos_fallidos', sa.Integer(), nullable=False),
        sa.Column('bloqueado', sa.Boolean(), nullable=False),
        sa.Column('ultimo_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_usuarios')),
    )
    op.create_index(op.f('ix_usuarios_email'), 'usuarios', ['email'], unique=True)
    op.create_index(op.f('ix_usuarios_rol'), 'usuarios', ['rol'], unique=False)
    op.create_index(op.f('ix_usuarios_token_verificacion'), 'usuarios', ['token_verificacion'], unique=False)
    op.create_index(op.f('ix_usuarios_token_reseteo'), 'usuarios', ['token_reseteo'], unique=False)

    # === Navegación ===
    op.create_table('modulos',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('nombre', sa.String(length=100), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('descripcion', sa.Text(), nullable=True),
        sa.Column('icono', sa.String(length=50), nullable=True),
        sa.Column('tipo', sa.String(length=20), nullable=False),
        sa.Column('activo', sa.Boolean(), nullable=False),
        sa.Column('orden', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_modulos')),
    )
    op.create_index(op.f('ix_modulos_slug'), 'modulos', ['slug'], unique=True)

    op.create_table('submodulos',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('modulo_id', sa.Uuid(), nullable=False),
        sa.Column('nombre', sa.String(length=100), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('descripcion', sa.Text(), nullable=True),
        sa.Column('icono', sa.String(length=50), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=False),
        sa.Column('orden', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['modulo_id'], ['modulos.id'], name=op.f('fk_submodulos_modulo_id_modulos'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_submodulos')),
        sa.UniqueConstraint('modulo_id', 'slug', name='uq_submodulo_modulo_slug'),
    )
    op.create_index(op.f('ix_submodulos_modulo_id'), 'submodulos', ['modulo_id'], unique=False)

    # === Permisos ===
    op.create_table('permisos',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('nombre', sa.String(length=100), nullable=False),
        sa.Column('codigo', sa.String(length=100), nullable=False),
        sa.Column('descripcion', sa.Text(), nullable=True),
        sa.Column('modulo_id', sa.Uuid(), nullable=True),
        sa.Column('submodulo_id', sa.Uuid(), nullable=True),
        sa.Column('acciones', JSON_TYPE, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['modulo_id'], ['modulos.id'], name=op.f('fk_permisos_modulo_id_modulos')),
        sa.ForeignKeyConstraint(['submodulo_id'], ['submodulos.id'], name=op.f('fk_permisos_submodulo_id_submodulos')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_permisos')),
    )
    op.create_index(op.f('ix_permisos_codigo'), 'permisos', ['codigo'], unique=True)
    op.create_index(op.f('ix_permisos_modulo_id'), 'permisos', ['modulo_id'], unique=False)
    op.create_index(op.f('ix_permisos_submodulo_id'), 'permisos', ['submodulo_id'], unique=False)

    op.create_table('usuarios_permisos',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('usuario_id', sa.Uuid(), nullable=False),
        sa.Column('permiso_id', sa.Uuid(), nullable=False),
        sa.Column('acciones', JSON_TYPE, nullable=False),
        sa.Column('otorgado_por', sa.Uuid(), nullable=True),
        sa.Column('otorgado_en', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('expira_en', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['usuario_id'], ['usuarios.id'], name=op.f('fk_usuarios_permisos_usuario_id_usuarios'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['permiso_id'], ['permisos.id'], name=op.f('fk_usuarios_permisos_permiso_id_permisos'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['otorgado_por'], ['usuarios.id'], name=op.f('fk_usuarios_permisos_otorgado_por_usuarios'), ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_usuarios_permisos')),
        sa.UniqueConstraint('usuario_id', 'permiso_id', name='uq_usuario_permiso'),
    )
    op.create_index(op.f('ix_usuarios_permisos_usuario_id'), 'usuarios_permisos', ['usuario_id'], unique=False)
    op.create_index(op.f('ix_usuarios_permisos_permiso_id'), 'usuarios_permisos', ['permiso_id'], unique=False)

    # === Catálogos académicos ===
    op.create_table('facultades',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('nombre', sa.String(length=200), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_facultades')),
        sa.UniqueConstraint('nombre', name=op.f('uq_facultades_nombre')),
    )
    op.create_table('departamentos',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('nombre', sa.String(length=200), nullable=False),
        sa.Column('facultad_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['facultad_id'], ['facultades.id'], name=op.f('fk_departamentos_facultad_id_facultades')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_departamentos')),
    )
    op.create_index(op.f('ix_departamentos_facultad_id'), 'departamentos', ['facultad_id'], unique=False)

    # === Constancias ===
    op.create_table('constancias',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('dni', sa.String(length=8), nullable=False),
        sa.Column('codigo_estudiante', sa.String(length=20), nullable=False),
        sa.Column('nombre_completo', sa.String(length=255), nullable=False),
        sa.Column('numero_constancia', sa.String(length=50), nullable=False),
        sa.Column('anio', sa.Integer(), nullable=False),
        sa.Column('observacion', sa.Text(), nullable=True),
        sa.Column('tipo', sa.String(length=30), nullable=False),
        sa.Column('estado', sa.String(length=20), nullable=False),
        sa.Column('nombre_archivo', sa.String(length=255), nullable=True),
        sa.Column('url_archivo', sa.String(length=500), nullable=True),
        sa.Column('tamano_archivo', sa.Integer(), nullable=True),
        sa.Column('mime_type', sa.String(length=100), nullable=True),
        sa.Column('creado_por_id', sa.Uuid(), nullable=False),
        sa.Column('aprobado_por_id', sa.Uuid(), nullable=True),
        sa.Column('aprobado_en', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['creado_por_id'], ['usuarios.id'], name=op.f('fk_constancias_creado_por_id_usuarios')),
        sa.ForeignKeyConstraint(['aprobado_por_id'], ['usuarios.id'], name=op.f('fk_constancias_aprobado_por_id_usuarios')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_constancias')),
    )
    op.create_index(op.f('ix_constancias_dni'), 'constancias', ['dni'], unique=False)
    op.create_index(op.f('ix_constancias_codigo_estudiante'), 'constancias', ['codigo_estudiante'], unique=False)
    op.create_index(op.f('ix_constancias_numero_constancia'), 'constancias', ['numero_constancia'], unique=True)
    op.create_index(op.f('ix_constancias_anio'), 'constancias', ['anio'], unique=False)
    op.create_index(op.f('ix_constancias_estado'), 'constancias', ['estado'], unique=False)
    op.create_index(op.f('ix_constancias_creado_por_id'), 'constancias', ['creado_por_id'], unique=False)

    # === Resoluciones ===
    op.create_table('resoluciones',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tipo_resolucion', sa.String(length=50), nullable=False),
        sa.Column('numero_resolucion', sa.String(length=100), nullable=False),
        sa.Column('fecha_resolucion', sa.Date(), nullable=False),
        sa.Column('modalidad', sa.String(length=50), nullable=True),
        sa.Column('es_financiado', sa.Boolean(), nullable=False),
        sa.Column('tipo_financiamiento', sa.String(length=30), nullable=True),
        sa.Column('monto', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('dni_asesor', sa.String(length=8), nullable=True),
        sa.Column('nombre_asesor', sa.String(length=255), nullable=True),
        sa.Column('titulo_proyecto', sa.Text(), nullable=True),
        sa.Column('facultad_id', sa.Integer(), nullable=True),
        sa.Column('departamento_id', sa.Integer(), nullable=True),
        sa.Column('estado', sa.String(length=20), nullable=False),
        sa.Column('creado_por_id', sa.Uuid(), nullable=False),
        sa.Column('aprobado_por_id', sa.Uuid(), nullable=True),
        sa.Column('aprobado_en', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['facultad_id'], ['facultades.id'], name=op.f('fk_resoluciones_facultad_id_facultades')),
        sa.ForeignKeyConstraint(['departamento_id'], ['departamentos.id'], name=op.f('fk_resoluciones_departamento_id_departamentos')),
        sa.ForeignKeyConstraint(['creado_por_id'], ['usuarios.id'], name=op.f('fk_resoluciones_creado_por_id_usuarios')),
        sa.ForeignKeyConstraint(['aprobado_por_id'], ['usuarios.id'], name=op.f('fk_resoluciones_aprobado_por_id_usuarios')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_resoluciones')),
    )
    op.create_index(op.f('ix_resoluciones_numero_resolucion'), 'resoluciones', ['numero_resolucion'], unique=True)
    op.create_index(op.f('ix_resoluciones_dni_asesor'), 'resoluciones', ['dni_asesor'], unique=False)
    op.create_index(op.f('ix_resoluciones_estado'), 'resoluciones', ['estado'], unique=False)
    op.create_index(op.f('ix_resoluciones_creado_por_id'), 'resoluciones', ['creado_por_id'], unique=False)

    op.create_table('resoluciones_estudiantes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('resolucion_id', sa.Uuid(), nullable=False),
        sa.Column('dni', sa.String(length=8), nullable=False),
        sa.Column('codigo', sa.String(length=20), nullable=True),
        sa.Column('nombres', sa.String(length=150), nullable=False),
        sa.Column('apellidos', sa.String(length=150), nullable=False),
        sa.ForeignKeyConstraint(['resolucion_id'], ['resoluciones.id'], name=op.f('fk_resoluciones_estudiantes_resolucion_id_resoluciones'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_resoluciones_estudiantes')),
    )
    op.create_index(op.f('ix_resoluciones_estudiantes_resolucion_id'), 'resoluciones_estudiantes', ['resolucion_id'], unique=False)
    op.create_index(op.f('ix_resoluciones_estudiantes_dni'), 'resoluciones_estudiantes', ['dni'], unique=False)

    op.create_table('resoluciones_docentes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('resolucion_id', sa.Uuid(), nullable=False),
        sa.Column('dni', sa.String(length=8), nullable=False),
        sa.Column('nombres', sa.String(length=150), nullable=False),
        sa.Column('apellidos', sa.String(length=150), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('facultad', sa.String(length=200), nullable=True),
        sa.ForeignKeyConstraint(['resolucion_id'], ['resoluciones.id'], name=op.f('fk_resoluciones_docentes_resolucion_id_resoluciones'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_resoluciones_docentes')),
    )
    op.create_index(op.f('ix_resoluciones_docentes_resolucion_id'), 'resoluciones_docentes', ['resolucion_id'], unique=False)
    op.create_index(op.f('ix_resoluciones_docentes_dni'), 'resoluciones_docentes', ['dni'], unique=False)

    op.create_table('resoluciones_archivos',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('resolucion_id', sa.Uuid(), nullable=False),
        sa.Column('nombre_archivo', sa.String(length=255), nullable=False),
        sa.Column('url_archivo', sa.String(length=500), nullable=False),
        sa.Column('tamano_archivo', sa.Integer(), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=False),
        sa.Column('tipo', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['resolucion_id'], ['resoluciones.id'], name=op.f('fk_resoluciones_archivos_resolucion_id_resoluciones'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_resoluciones_archivos')),
    )
    op.create_index(op.f('ix_resoluciones_archivos_resolucion_id'), 'resoluciones_archivos', ['resolucion_id'], unique=False)

    # === Auditoría ===
    op.create_table('audit_log',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('usuario_id', sa.Uuid(), nullable=True),
        sa.Column('accion', sa.String(length=100), nullable=False),
        sa.Column('entidad', sa.String(length=50), nullable=False),
        sa.Column('entidad_id', sa.String(length=64), nullable=True),
        sa.Column('cambios', JSON_TYPE, nullable=True),
        sa.Column('metadatos', JSON_TYPE, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['usuario_id'], ['usuarios.id'], name=op.f('fk_audit_log_usuario_id_usuarios'), ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_audit_log')),
    )
    op.create_index(op.f('ix_audit_log_usuario_id'), 'audit_log', ['usuario_id'], unique=False)
    op.create_index(op.f('ix_audit_log_accion'), 'audit_log', ['accion'], unique=False)
    op.create_index(op.f('ix_audit_log_entidad'), 'audit_log', ['entidad'], unique=False)
    op.create_index(op.f('ix_audit_log_entidad_id'), 'audit_log', ['entidad_id'], unique=False)
    op.create_index(op.f('ix_audit_log_created_at'), 'audit_log', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_table('audit_log')
    op.drop_table('resoluciones_archivos')
    op.drop_table('resoluciones_docentes')
    op.drop_table('resoluciones_estudiantes')
    op.drop_table('resoluciones')
    op.drop_table('constancias')
    op.drop_table('departamentos')
    op.drop_table('facultades')
    op.drop_table('usuarios_permisos')
    op.drop_table('permisos')
    op.drop_table('submodulos')
    op.drop_table('modulos')
    op.drop_table('usuarios')
