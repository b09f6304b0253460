import enum


class Role(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    LOGISTICS = "logistics"
    DRIVER = "driver"
    SYSTEM = "system"  # batch jobs (rescheduler)


class Resource(str, enum.Enum):
    USERS = "users"
    COMPANIES = "companies"
    WAREHOUSES = "warehouses"
    SLOTS = "slots"
    BOOKINGS = "bookings"
    REPORTS = "reports"
    SETTINGS = "settings"
    PROFILE = "profile"


class Action(str, enum.Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    UPDATE_OWN = "update_own"
    EXPORT = "export"
    OVERRIDE_STATUS = "override_status"


Capability = tuple[Resource, Action]

_CRUD = (Action.CREATE, Action.READ, Action.UPDATE, Action.DELETE)


def _grant(resource: Resource, *actions: Action) -> set[Capability]:
    return {(resource, a) for a in actions}


CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.SUPER_ADMIN: frozenset(
        _grant(Resource.USERS, *_CRUD)
        | _grant(Resource.COMPANIES, *_CRUD)
        | _grant(Resource.WAREHOUSES, *_CRUD)
        | _grant(Resource.SLOTS, *_CRUD)
        | _grant(Resource.BOOKINGS, *_CRUD, Action.OVERRIDE_STATUS)
        | _grant(Resource.REPORTS, Action.READ, Action.EXPORT)
        | _grant(Resource.SETTINGS, Action.READ, Action.UPDATE)
    ),
    Role.ADMIN: frozenset(
        _grant(Resource.USERS, Action.CREATE, Action.READ, Action.UPDATE)
        | _grant(Resource.WAREHOUSES, Action.CREATE, Action.READ, Action.UPDATE)
        | _grant(Resource.SLOTS, *_CRUD)
        | _grant(Resource.BOOKINGS, *_CRUD, Action.OVERRIDE_STATUS)
        | _grant(Resource.REPORTS, Action.READ, Action.EXPORT)
        | _grant(Resource.SETTINGS, Action.READ, Action.UPDATE)
    ),
    Role.LOGISTICS: frozenset(
        _grant(Resource.USERS, Action.READ)
        | _grant(Resource.WAREHOUSES, Action.READ)
        | _grant(Resource.SLOTS, Action.CREATE, Action.READ, Action.UPDATE)
        | _grant(Resource.BOOKINGS, Action.CREATE, Action.READ, Action.UPDATE)
        | _grant(Resource.REPORTS, Action.READ)
    ),
    Role.DRIVER: frozenset(
        _grant(Resource.BOOKINGS, Action.CREATE, Action.READ, Action.UPDATE_OWN)
        | _grant(Resource.SLOTS, Action.READ)
        | _grant(Resource.PROFILE, Action.READ, Action.UPDATE)
    ),
    Role.SYSTEM: frozenset(
        _grant(Resource.SLOTS, Action.READ)
        | _grant(Resource.BOOKINGS, Action.READ, Action.UPDATE)
    ),
}


def capabilities_for(role: Role) -> frozenset[Capability]:
    return CAPABILITIES.get(role, frozenset())


def has_permission(role: Role, resource: Resource, action: Action) -> bool:
    return (resource, action) in capabilities_for(role)
