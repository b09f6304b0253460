from types import SimpleNamespace

import pytest

from dockbook.core.context import RequestContext, can_access_company, can_modify_booking
from dockbook.core.permissions import Action, Resource, Role, has_permission


@pytest.mark.parametrize(
    "role, resource, action, expected",
    [
        (Role.SUPER_ADMIN, Resource.COMPANIES, Action.DELETE, True),
        (Role.ADMIN, Resource.BOOKINGS, Action.OVERRIDE_STATUS, True),
        (Role.ADMIN, Resource.COMPANIES, Action.CREATE, False),
        (Role.LOGISTICS, Resource.SLOTS, Action.CREATE, True),
        (Role.LOGISTICS, Resource.SLOTS, Action.DELETE, False),
        (Role.LOGISTICS, Resource.BOOKINGS, Action.OVERRIDE_STATUS, False),
        (Role.DRIVER, Resource.BOOKINGS, Action.UPDATE_OWN, True),
        (Role.DRIVER, Resource.BOOKINGS, Action.UPDATE, False),
        (Role.DRIVER, Resource.SLOTS, Action.CREATE, False),
        (Role.SYSTEM, Resource.BOOKINGS, Action.UPDATE, True),
    ],
)
def test_capability_table(role, resource, action, expected):
    assert has_permission(role, resource, action) is expected


def test_context_capabilities():
    ctx = RequestContext(user_id=1, user_type=Role.LOGISTICS, company_id=3)
    assert ctx.can(Resource.BOOKINGS, Action.CREATE)
    assert not ctx.can(Resource.USERS, Action.DELETE)
    assert (Resource.SLOTS, Action.READ) in ctx.capabilities

    system = RequestContext.system()
    assert system.user_id is None and system.user_type == Role.SYSTEM


def test_can_modify_booking():
    booking = SimpleNamespace(company_id=3, driver_id=20, created_by=10)

    assert can_modify_booking(RequestContext(1, Role.SUPER_ADMIN), booking)
    assert can_modify_booking(RequestContext(2, Role.ADMIN, company_id=3), booking)
    assert not can_modify_booking(RequestContext(2, Role.ADMIN, company_id=4), booking)
    assert can_modify_booking(RequestContext(20, Role.DRIVER, company_id=3), booking)
    assert can_modify_booking(RequestContext(10, Role.DRIVER, company_id=3), booking)
    assert not can_modify_booking(RequestContext(21, Role.DRIVER, company_id=3), booking)
    assert not can_modify_booking(RequestContext.system(), booking)


def test_can_access_company():
    assert can_access_company(RequestContext(1, Role.SUPER_ADMIN), 99)
    assert can_access_company(RequestContext(2, Role.ADMIN, company_id=5), 5)
    assert not can_access_company(RequestContext(2, Role.ADMIN, company_id=5), 6)
    assert not can_access_company(RequestContext(2, Role.ADMIN), None)
