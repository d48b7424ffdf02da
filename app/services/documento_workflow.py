"""
Transiciones de estado compartidas por constancias y resoluciones.

PENDIENTE es el estado inicial; APROBADO y RECHAZADO son terminales, salvo que una
resolución aprobada todavía puede rechazarse.
"""
import logging
from typing import Optional, Union
from uuid import UUID
from datetime import datetime, timezone

from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session

from app.models.constancia import Constancia
from app.models.resolucion import Resolucion
from app.schemas.enums import EstadoDocumentoEnum
from app.services.audit_log import audit_log_service

logger = logging.getLogger(__name__)

Documento = Union[Constancia, Resolucion]

PENDIENTE = EstadoDocumentoEnum.PENDIENTE.value
APROBADO = EstadoDocumentoEnum.APROBADO.value
RECHAZADO = EstadoDocumentoEnum.RECHAZADO.value


ETIQUETAS = {"constancia": "constancia", "resolucion": "resolución"}


def _entidad(documento: Documento) -> str:
    return "constancia" if isinstance(documento, Constancia) else "resolucion"


def approve(db: Session, *, documento: Documento, actor_id: UUID, request: Optional[Request] = None) -> Documento:
    """
    PENDIENTE -> APROBADO, registrando quién y cuándo aprobó. NO realiza db.commit().
    Cualquier otro estado responde 400 y deja el documento intacto.
    """
    entidad = _entidad(documento)
    if documento.estado != PENDIENTE:
        logger.warning(f"Aprobación rechazada: {entidad} {documento.id} ya está en estado {documento.estado}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"La {ETIQUETAS[entidad]} ya fue procesada (estado actual: {documento.estado})",
        )
    documento.estado = APROBADO
    documento.aprobado_por_id = actor_id
    documento.aprobado_en = datetime.now(timezone.utc)
    db.add(documento)
    audit_log_service.record(
        db,
        accion=f"{entidad}.approved",
        entidad=entidad,
        entidad_id=documento.id,
        usuario_id=actor_id,
        cambios={"estado": {"antes": PENDIENTE, "despues": APROBADO}},
        request=request,
    )
    logger.info(f"{ETIQUETAS[entidad].capitalize()} {documento.id} aprobada por {actor_id}")
    return documento


def reject(db: Session, *, documento: Documento, actor_id: UUID, request: Optional[Request] = None) -> Documento:
    """
    Rechaza un documento. NO realiza db.commit().

    Constancia: solo desde PENDIENTE; únicamente cambia el estado.
    Resolución: desde cualquier estado salvo RECHAZADO; limpia los datos de aprobación.
    """
    entidad = _entidad(documento)
    estado_anterior = documento.estado
    if isinstance(documento, Constancia):
        if documento.estado != PENDIENTE:
            logger.warning(f"Rechazo inválido: constancia {documento.id} en estado {documento.estado}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"La constancia ya fue procesada (estado actual: {documento.estado})",
            )
        documento.estado = RECHAZADO
    else:
        if documento.estado == RECHAZADO:
            logger.warning(f"Rechazo inválido: resolución {documento.id} ya está rechazada")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="La resolución ya está rechazada")
        documento.estado = RECHAZADO
        documento.aprobado_por_id = None
        documento.aprobado_en = None
    db.add(documento)
    audit_log_service.record(
        db,
        accion=f"{entidad}.rejected",
        entidad=entidad,
        entidad_id=documento.id,
        usuario_id=actor_id,
        cambios={"estado": {"antes": estado_anterior, "despues": RECHAZADO}},
        request=request,
    )
    logger.info(f"{ETIQUETAS[entidad].capitalize()} {documento.id} rechazada por {actor_id}")
    return documento
