from pydantic import BaseModel
from typing import Optional


class AuthenticatedUser(BaseModel):
    uid: str
    email: Optional[str] = None
    anonymous: bool = False
