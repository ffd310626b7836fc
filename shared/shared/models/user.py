from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shared.constants import Role


class CurrentUser(BaseModel):
    """Caller identity from the bearer token; the auth service owns credentials."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: UUID
    roles: list[Role] = Field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return any(r in (Role.ADMIN, Role.SUPER_ADMIN) for r in self.roles)
