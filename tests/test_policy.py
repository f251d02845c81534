import pytest

from bazaar.identity import Actor, Role
from bazaar.policy import Action, Effect, Policy, Resource, Rule

policy = Policy()


@pytest.mark.parametrize(("role", "action", "resource", "allowed"), [
    (Role.BUYER, Action.CREATE, Resource.ORDER, True),
    (Role.BUYER, Action.CANCEL, Resource.ORDER, False),
    (Role.BUYER, Action.FULFILL, Resource.ORDER_ITEM, False),
    (Role.VENDOR, Action.FULFILL, Resource.ORDER_ITEM, True),
    (Role.VENDOR, Action.UPDATE, Resource.ORDER, False),
    (Role.ADMIN, Action.CANCEL, Resource.ORDER, True),
    (Role.ADMIN, Action.FULFILL, Resource.ORDER_ITEM, False),
    (Role.ADMIN, Action.PERMANENT_DELETE, Resource.USER, False),
    (Role.MASTER_ADMIN, Action.PERMANENT_DELETE, Resource.USER, True),
    (Role.MASTER_ADMIN, Action.CANCEL, Resource.ORDER, True),
])
def test_rule_table(role, action, resource, allowed):
    assert policy.allows(role, action, resource) is allowed


def test_anonymous_is_401_and_wrong_role_is_403():
    assert policy.authorize(None, Action.READ, Resource.ORDER).unwrap_err().status_code == 401

    buyer = Actor("user_1", Role.BUYER)
    error = policy.authorize(buyer, Action.CANCEL, Resource.ORDER).unwrap_err()
    assert (error.code, error.status_code) == ("FORBIDDEN", 403)
    assert error.message == "Role 'buyer' may not cancel order"


def test_authorize_returns_the_actor():
    admin = Actor("user_2", Role.ADMIN)
    assert policy.authorize(admin, Action.MANAGE, Resource.USER).unwrap() is admin


def test_explicit_deny_beats_inherited_allow():
    strict = Policy(rules=(
        Rule(Role.ADMIN, Action.DELETE, Resource.USER),
        Rule(Role.MASTER_ADMIN, Action.DELETE, Resource.USER, Effect.DENY),
        Rule(Role.MASTER_ADMIN, Action.DELETE, Resource.USER),
    ))
    assert strict.allows(Role.ADMIN, Action.DELETE, Resource.USER)
    assert not strict.allows(Role.MASTER_ADMIN, Action.DELETE, Resource.USER)
