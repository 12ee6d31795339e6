import pytest

from gymdesk.models.membership_plan import MembershipPlan
from gymdesk.utils.errors import ValidationError


@pytest.mark.parametrize("raw,expected", [
    (None, []),
    ("", []),
    ('["Gym Access", "Locker Room"]', ["Gym Access", "Locker Room"]),
    ("Gym Access, Locker Room ,, Sauna", ["Gym Access", "Locker Room", "Sauna"]),
    ({"a": "Gym Access", "b": "Pool"}, ["Gym Access", "Pool"]),
    ('{"x": "Gym Access", "y": "Pool"}', ["Gym Access", "Pool"]),
    (["Gym Access", " ", None, "Pool"], ["Gym Access", "Pool"]),
])
def test_normalize_features(raw, expected):
    assert MembershipPlan.normalize_features(raw) == expected


def test_constructor_normalizes_features():
    plan = MembershipPlan(name="Basic", duration_months=1, price=10, features="A,B")
    assert plan.features == ["A", "B"]


def test_validate_rejects_bad_plans():
    with pytest.raises(ValidationError):
        MembershipPlan(name="", duration_months=1, price=10).validate()
    with pytest.raises(ValidationError):
        MembershipPlan(name="X", duration_months=0, price=10).validate()
    with pytest.raises(ValidationError):
        MembershipPlan(name="X", duration_months=1, price=-1).validate()


def test_plan_features_stored_as_json_list(app_ctx):
    plan = MembershipPlan(name="Student", duration_months=6, price=1500,
                          features={"k1": "Gym Access", "k2": "Study Room"})
    plan.save()
    MembershipPlan.update(plan.id, {"features": "Gym Access, Pool"})
    reloaded = MembershipPlan.get_by_id(plan.id)
    assert reloaded.features == ["Gym Access", "Pool"]
    assert reloaded.to_dict()["durationMonths"] == 6


def test_seeded_plans_present(app_ctx):
    names = [p.name for p in MembershipPlan.get_all()]
    assert names == ["Monthly Basic", "Quarterly Premium", "Yearly VIP"]
