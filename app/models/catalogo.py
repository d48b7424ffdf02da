from typing import List, Optional

from sqlalchemy import String, Integer, ForeignKey
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base


class Facultad(Base):
    __tablename__ = "facultades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nombre: Mapped[str] = mapped_column(String(200), unique=True)

    departamentos: Mapped[List["Departamento"]] = relationship(
        "Departamento", back_populates="facultad", order_by="Departamento.nombre"
    )

    def __repr__(self) -> str:
        return f"<Facultad(id={self.id}, nombre='{self.nombre}')>"


class Departamento(Base):
    __tablename__ = "departamentos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nombre: Mapped[str] = mapped_column(String(200))
    facultad_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("facultades.id"), nullable=True, index=True)

    facultad: Mapped[Optional["Facultad"]] = relationship("Facultad", back_populates="departamentos")

    def __repr__(self) -> str:
        return f"<Departamento(id={self.id}, nombre='{self.nombre}')>"
