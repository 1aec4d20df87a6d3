# jgpnr/schemas/token.py
from pydantic import BaseModel, Field
from typing import Optional


class TokenPayload(BaseModel):
    sub: str  # staff user ID
    role: Optional[str] = Field(default=None)
    exp: int

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }
