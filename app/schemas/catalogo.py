from typing import Optional

from pydantic import BaseModel, ConfigDict


class Facultad(BaseModel):
    id: int
    nombre: str

    model_config = ConfigDict(from_attributes=True)


class Departamento(BaseModel):
    id: int
    nombre: str
    facultad_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)
