from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

Role = Literal["customer", "staff", "admin", "service_role"]


class AuthUser(BaseModel):
    """
    The authenticated caller, decoded from a bearer token.

    The store trusts these claims as-is; issuing and refreshing tokens happens
    in the identity provider.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: Role = "customer"

    @property
    def is_staff(self) -> bool:
        return self.role in ("staff", "admin")
