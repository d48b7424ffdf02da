import logging
from typing import List

from sqlalchemy.orm import Session
from sqlalchemy import select, or_, and_

from app.models.constancia import Constancia
from app.models.resolucion import Resolucion, ResolucionEstudiante
from app.schemas.busqueda import (
    BusquedaPublicaResponse, ConstanciaPublica, ResolucionPublica, EstudiantePublico, ArchivoPublico,
)
from app.schemas.enums import EstadoDocumentoEnum

logger = logging.getLogger(__name__)

MAX_RESULTADOS = 50
APROBADO = EstadoDocumentoEnum.APROBADO.value


def _resolucion_publica(resolucion: Resolucion) -> ResolucionPublica:
    return ResolucionPublica(
        id=resolucion.id,
        numero_resolucion=resolucion.numero_resolucion,
        tipo_resolucion=resolucion.tipo_resolucion,
        modalidad=resolucion.modalidad,
        titulo_proyecto=resolucion.titulo_proyecto,
        fecha_resolucion=resolucion.fecha_resolucion,
        nombre_asesor=resolucion.nombre_asesor,
        es_financiado=resolucion.es_financiado,
        monto=resolucion.monto,
        estado=resolucion.estado,
        facultad=resolucion.facultad.nombre if resolucion.facultad else None,
        departamento=resolucion.departamento.nombre if resolucion.departamento else None,
        estudiantes=[EstudiantePublico.model_validate(e) for e in resolucion.estudiantes],
        archivos=[ArchivoPublico.model_validate(a) for a in resolucion.archivos],
    )


def _merge(principales: list, adicionales: list) -> list:
    vistos = {item.id for item in principales}
    combinados = list(principales)
    for item in adicionales:
        if item.id not in vistos:
            vistos.add(item.id)
            combinados.append(item)
    return combinados[:MAX_RESULTADOS]


class BusquedaPublicaService:
    """
    Búsqueda sin autenticación sobre documentos APROBADOS.
    Si el término tiene varias palabras se agrega una segunda pasada que exige
    todas las palabras en el nombre del estudiante.
    """

    def _constancias(self, db: Session, term: str) -> List[Constancia]:
        like = f"%{term}%"
        statement = (
            select(Constancia)
            .where(
                Constancia.estado == APROBADO,
                or_(
                    Constancia.nombre_completo.ilike(like),
                    Constancia.codigo_estudiante.ilike(like),
                    Constancia.dni.ilike(like),
                    Constancia.numero_constancia.ilike(like),
                ),
            )
            .order_by(Constancia.created_at.desc())
            .limit(MAX_RESULTADOS)
        )
        return list(db.execute(statement).scalars().all())

    def _constancias_por_palabras(self, db: Session, palabras: List[str]) -> List[Constancia]:
        statement = (
            select(Constancia)
            .where(Constancia.estado == APROBADO, *[Constancia.nombre_completo.ilike(f"%{p}%") for p in palabras])
            .order_by(Constancia.created_at.desc())
            .limit(MAX_RESULTADOS)
        )
        return list(db.execute(statement).scalars().all())

    def _resoluciones(self, db: Session, term: str) -> List[Resolucion]:
        like = f"%{term}%"
        por_estudiante = select(ResolucionEstudiante.resolucion_id).where(or_(
            ResolucionEstudiante.nombres.ilike(like),
            ResolucionEstudiante.apellidos.ilike(like),
            ResolucionEstudiante.codigo.ilike(like),
            ResolucionEstudiante.dni.ilike(like),
        ))
        statement = (
            select(Resolucion)
            .where(
                Resolucion.estado == APROBADO,
                or_(
                    Resolucion.numero_resolucion.ilike(like),
                    Resolucion.nombre_asesor.ilike(like),
                    Resolucion.dni_asesor.ilike(like),
                    Resolucion.titulo_proyecto.ilike(like),
                    Resolucion.id.in_(por_estudiante),
                ),
            )
            .order_by(Resolucion.fecha_resolucion.desc())
            .limit(MAX_RESULTADOS)
        )
        return list(db.execute(statement).scalars().all())

    def _resoluciones_por_palabras(self, db: Session, palabras: List[str]) -> List[Resolucion]:
        # Todas las palabras deben aparecer en el mismo estudiante
        por_estudiante = select(ResolucionEstudiante.resolucion_id).where(and_(*[
            or_(ResolucionEstudiante.nombres.ilike(f"%{p}%"), ResolucionEstudiante.apellidos.ilike(f"%{p}%"))
            for p in palabras
        ]))
        statement = (
            select(Resolucion)
            .where(Resolucion.estado == APROBADO, Resolucion.id.in_(por_estudiante))
            .order_by(Resolucion.fecha_resolucion.desc())
            .limit(MAX_RESULTADOS)
        )
        return list(db.execute(statement).scalars().all())

    def search(self, db: Session, *, query: str) -> BusquedaPublicaResponse:
        term = query.strip().lower()
        constancias = self._constancias(db, term)
        resoluciones = self._resoluciones(db, term)

        palabras = term.split()
        if len(palabras) > 1:
            constancias = _merge(constancias, self._constancias_por_palabras(db, palabras))
            resoluciones = _merge(resoluciones, self._resoluciones_por_palabras(db, palabras))

        logger.info(f"Búsqueda pública '{term}': {len(constancias)} constancias, {len(resoluciones)} resoluciones.")
        return BusquedaPublicaResponse(
            constancias=[ConstanciaPublica.model_validate(c) for c in constancias],
            resoluciones=[_resolucion_publica(r) for r in resoluciones],
            total=len(constancias) + len(resoluciones),
        )

busqueda_publica_service = BusquedaPublicaService()
