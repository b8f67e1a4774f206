from datetime import datetime, timedelta, timezone

import pytest

from defect_tracker.entities import Defect, User
from defect_tracker.enums import Status, UserType
from defect_tracker.errors import Conflict, InvalidReference, InvalidValue, InvariantViolation
from defect_tracker.rules import Operation, validate


T0 = datetime(2015, 10, 3, 12, 0, tzinfo=timezone.utc)


class FakeLookup:
    def __init__(self, *users: User) -> None:
        self.users = {user.id: user for user in users}

    def get_user(self, user_id):
        return self.users.get(user_id)

    def users_named(self, name):
        return [user for user in self.users.values() if user.name == name]


DEV = User(id="u-dev", name="Bar", user_type=UserType.DEVELOPER)
CUSTOMER = User(id="u-cust", name="Foo", user_type=UserType.CUSTOMER)
LOOKUP = FakeLookup(DEV, CUSTOMER)


def _defect(**overrides) -> Defect:
    fields = {"created": T0, "status": Status.CREATED, "created_by": DEV.id}
    fields.update(overrides)
    return Defect(**fields)


class TestUserRules:
    def test_new_unique_name_passes(self):
        validate(Operation.CREATE, User(name="New", user_type=UserType.TESTER), None, LOOKUP)

    @pytest.mark.parametrize("user_type", list(UserType))
    def test_duplicate_name_conflicts_regardless_of_other_fields(self, user_type):
        with pytest.raises(Conflict):
            validate(Operation.CREATE, User(name="Bar", user_type=user_type, image_url="x"), None, LOOKUP)

    def test_update_keeping_own_name_passes(self):
        updated = User(id=DEV.id, name="Bar", user_type=UserType.MANAGER)
        validate(Operation.UPDATE, updated, DEV, LOOKUP)

    def test_rename_onto_existing_name_conflicts(self):
        renamed = User(id=DEV.id, name="Foo", user_type=UserType.DEVELOPER)
        with pytest.raises(Conflict):
            validate(Operation.UPDATE, renamed, DEV, LOOKUP)


class TestDefectRules:
    def test_valid_defect_passes(self):
        validate(Operation.CREATE, _defect(assigned_to=DEV.id), None, LOOKUP)

    def test_unknown_creator_is_invalid_reference(self):
        with pytest.raises(InvalidReference) as exc_info:
            validate(Operation.CREATE, _defect(created_by="missing"), None, LOOKUP)
        assert exc_info.value.field == "createdBy"

    def test_creator_is_only_resolved_on_create(self):
        prior = _defect(id="d1", created_by="gone")
        validate(Operation.UPDATE, _defect(id="d1", created_by="gone"), prior, LOOKUP)

    def test_unknown_assignee_is_invalid_reference(self):
        with pytest.raises(InvalidReference) as exc_info:
            validate(Operation.CREATE, _defect(assigned_to="missing"), None, LOOKUP)
        assert exc_info.value.field == "assignedTo"

    @pytest.mark.parametrize("op", list(Operation))
    def test_non_developer_assignee_conflicts(self, op):
        with pytest.raises(Conflict):
            validate(op, _defect(assigned_to=CUSTOMER.id), _defect(), LOOKUP)

    def test_reopened_without_assignee_is_invariant_violation(self):
        with pytest.raises(InvariantViolation):
            validate(Operation.CREATE, _defect(status=Status.REOPENED), None, LOOKUP)

    def test_reopened_with_developer_assignee_passes(self):
        validate(Operation.CREATE, _defect(status=Status.REOPENED, assigned_to=DEV.id), None, LOOKUP)

    def test_eligibility_is_reported_before_reopened_rule(self):
        with pytest.raises(Conflict):
            validate(Operation.CREATE, _defect(status=Status.REOPENED, assigned_to=CUSTOMER.id), None, LOOKUP)

    def test_modified_before_created_is_invalid_value(self):
        with pytest.raises(InvalidValue) as exc_info:
            validate(Operation.UPDATE, _defect(modified=T0 - timedelta(seconds=1)), _defect(), LOOKUP)
        assert exc_info.value.field == "modified"

    def test_modified_equal_to_created_passes(self):
        validate(Operation.UPDATE, _defect(modified=T0), _defect(), LOOKUP)

    def test_reopened_rule_is_reported_before_date_ordering(self):
        with pytest.raises(InvariantViolation):
            validate(
                Operation.CREATE,
                _defect(status=Status.REOPENED, modified=T0 - timedelta(days=1)),
                None,
                LOOKUP,
            )

    @pytest.mark.parametrize("status", [s for s in Status if s is not Status.REOPENED])
    def test_other_statuses_need_no_assignee(self, status):
        validate(Operation.UPDATE, _defect(status=status), _defect(status=Status.CLOSED), LOOKUP)
