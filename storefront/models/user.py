# storefront/models/user.py
from pydantic import BaseModel, ConfigDict

class Identity(BaseModel):
    """Authenticated caller as vouched for by the identity provider"""
    user_id: str
    is_admin: bool = False

    model_config = ConfigDict(frozen=True)
