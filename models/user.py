from typing import Optional

from pydantic import BaseModel


class User(BaseModel):
    """Identity asserted by a verified Firebase ID token"""
    user_id: str
    email: Optional[str] = None
