from dataclasses import dataclass

from .permissions import Action, Capability, Resource, Role, capabilities_for


@dataclass(frozen=True)
class RequestContext:
    """Already-authenticated caller identity handed to every core call."""

    user_id: int | None
    user_type: Role
    company_id: int | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    @property
    def capabilities(self) -> frozenset[Capability]:
        return capabilities_for(self.user_type)

    @classmethod
    def system(cls) -> "RequestContext":
        return cls(user_id=None, user_type=Role.SYSTEM, user_agent="dockbook-scheduler")

    @property
    def is_super_admin(self) -> bool:
        return self.user_type == Role.SUPER_ADMIN

    def can(self, resource: Resource, action: Action) -> bool:
        return (resource, action) in self.capabilities


def can_modify_booking(ctx: RequestContext, booking) -> bool:
    """Staff roles may touch any booking of their scope; drivers only their own."""
    if ctx.user_type == Role.SUPER_ADMIN:
        return True
    if ctx.user_type in (Role.ADMIN, Role.LOGISTICS):
        return booking.company_id == ctx.company_id
    if ctx.user_type == Role.DRIVER:
        return ctx.user_id is not None and ctx.user_id in (booking.driver_id, booking.created_by)
    return False


def can_access_company(ctx: RequestContext, company_id: int | None) -> bool:
    return ctx.is_super_admin or (company_id is not None and company_id == ctx.company_id)
