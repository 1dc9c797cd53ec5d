import pytest

from conftest import VALID_STEP_1, VALID_STEP_2
from tanda.extensions import db
from tanda.models import Group, GroupMember, MemberRole, User
from tanda.services.group_service import (
    GroupCreationError, InvalidGroupDataError, create_group_from_form,
    get_group, list_groups_for_user
)


def form_fields(**overrides):
    fields = dict(VALID_STEP_1, **VALID_STEP_2)
    fields.update(virtual_meetings='no', accept_terms=True)
    fields.update(overrides)
    return fields


def test_creates_group_with_creator_as_admin(coordinator):
    summary = create_group_from_form(form_fields(require_id=True), coordinator.id)

    assert summary['name'] == 'Grupo Familiar'
    assert summary['status'] == 'recruiting'
    assert summary['members'] == 1

    group = get_group(summary['id'])
    assert group.contribution_amount == 1000
    assert group.max_participants == 10
    assert group.payment_frequency == 'monthly'
    assert group.require_id is True
    assert group.auto_suspend is False
    assert group.start_date is None
    assert group.get_total_per_cycle() == 10000

    membership = GroupMember.query.filter_by(group_id=group.id).one()
    assert membership.user_id == coordinator.id
    assert membership.role == MemberRole.ADMIN.value


def test_optional_fields_get_defaults(coordinator):
    summary = create_group_from_form(form_fields(), coordinator.id)
    group = get_group(summary['id'])

    assert group.grace_period_days == 3
    assert group.penalty_amount == 0
    assert group.rules is None
    assert group.virtual_meetings is False


def test_advanced_settings_are_stored(coordinator):
    summary = create_group_from_form(form_fields(
        start_date='2026-11-02',
        penalty_amount='75.5',
        grace_period='5',
        rules='Pagar antes del viernes',
        virtual_meetings='yes',
    ), coordinator.id)
    group = get_group(summary['id'])

    assert group.start_date.isoformat() == '2026-11-02'
    assert group.penalty_amount == 75.5
    assert group.grace_period_days == 5
    assert group.rules == 'Pagar antes del viernes'
    assert group.virtual_meetings is True


def test_invalid_payload_is_rejected(coordinator):
    with pytest.raises(InvalidGroupDataError) as excinfo:
        create_group_from_form(form_fields(contribution='5', name='AB'), coordinator.id)

    assert set(excinfo.value.errors) == {'contribution', 'name'}
    assert Group.query.count() == 0


def test_unknown_creator_is_rejected(app):
    with pytest.raises(GroupCreationError):
        create_group_from_form(form_fields(), 999)
    assert Group.query.count() == 0


def test_list_groups_for_user(coordinator):
    first = create_group_from_form(form_fields(name='Primer Grupo'), coordinator.id)
    second = create_group_from_form(form_fields(name='Segundo Grupo'), coordinator.id)

    other = User(name='Jose Perez', email='jose@example.com')
    other.set_password('secreto123')
    db.session.add(other)
    db.session.commit()
    create_group_from_form(form_fields(name='Grupo de Jose'), other.id)

    groups = list_groups_for_user(coordinator.id)
    assert [group.id for group in groups] == [second['id'], first['id']]


def test_overlong_location_is_rejected_before_saving(coordinator):
    with pytest.raises(InvalidGroupDataError) as excinfo:
        create_group_from_form(form_fields(location='L' * 121), coordinator.id)

    assert set(excinfo.value.errors) == {'location'}
    assert Group.query.count() == 0
