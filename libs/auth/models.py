from pydantic import BaseModel, ConfigDict, Field

from libs.auth.policy import DEFAULT_ROLE, AccessPolicy


class AuthUser(BaseModel):
    """
    Verified claims of an authenticated user.

    The same four claims travel in the API bearer token and in the web-app
    session cookie.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    login: str = Field(..., alias="sub")
    user_id: int = Field(..., alias="uid")
    full_name: str = Field("", alias="name")
    role: str = DEFAULT_ROLE.value

    @property
    def policy(self) -> AccessPolicy:
        return AccessPolicy.from_claims(self.role, self.login)

    def to_claims(self) -> dict:
        return self.model_dump(by_alias=True)
