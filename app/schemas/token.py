import uuid
from typing import Optional

from pydantic import BaseModel

# Schema para la respuesta del endpoint de login
class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

# Schema para los datos contenidos dentro del JWT (payload)
class TokenPayload(BaseModel):
    sub: uuid.UUID
    type: Optional[str] = None

# Schema para el cuerpo de la petición /refresh-token
class RefreshToken(BaseModel):
    refresh_token: str
