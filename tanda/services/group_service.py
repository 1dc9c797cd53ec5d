"""
GROUP SERVICE
=============

Persists groups submitted by the creation wizard.

RULES:
1. The payload is validated again here; the wizard is not trusted
2. Creation is ATOMIC: group + creator membership, or nothing
3. The creator is enrolled as the group's admin (coordinator)
"""

import logging

from tanda.extensions import db
from tanda.models import Group, GroupMember, GroupStatus, MemberRole, User
from tanda.services.form_session import STEP_VALIDATED_FIELDS, BOOLEAN_FIELDS
from tanda.services.validators import (
    clean_text, parse_date, parse_integer, parse_number, to_bool, validate_fields
)

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD_DAYS = 3

# Checkbox fields stored as same-named Group columns
FLAG_FIELDS = tuple(sorted(BOOLEAN_FIELDS - {'accept_terms'}))


class GroupServiceError(Exception):
    """Base exception for group operations"""
    pass


class GroupCreationError(GroupServiceError):
    """Raised when a group cannot be created"""
    pass


class InvalidGroupDataError(GroupCreationError):
    """Raised when the submitted fields do not pass validation"""

    def __init__(self, errors):
        self.errors = errors
        super().__init__(f"Invalid group data: {', '.join(sorted(errors))}")


def _payload_errors(fields):
    validated = [
        field for step_fields in STEP_VALIDATED_FIELDS.values()
        for field in step_fields if field != 'accept_terms'
    ]
    return validate_fields(fields, validated)


# ============================================================
# CREATE GROUP
# ============================================================

def create_group_from_form(fields, user_id):
    """
    Create a group from the wizard's field map.

    Returns: summary dict with at least 'id', 'name' and 'status'
    """
    try:
        errors = _payload_errors(fields)
        if errors:
            raise InvalidGroupDataError(errors)

        creator = db.session.get(User, user_id)
        if not creator:
            raise GroupCreationError(f"User {user_id} not found")

        grace_period = parse_integer(fields.get('grace_period'))
        penalty = parse_number(fields.get('penalty_amount'))

        group = Group(
            name=clean_text(fields.get('name')),
            description=clean_text(fields.get('description')),
            group_type=clean_text(fields.get('type')),
            location=clean_text(fields.get('location')),
            virtual_meetings=to_bool(fields.get('virtual_meetings')),
            contribution_amount=parse_number(fields.get('contribution')),
            max_participants=parse_integer(fields.get('max_participants')),
            payment_frequency=clean_text(fields.get('payment_frequency')),
            start_date=parse_date(fields.get('start_date')),
            rules=clean_text(fields.get('rules')) or None,
            penalty_amount=penalty if penalty is not None else 0.0,
            grace_period_days=grace_period if grace_period is not None else DEFAULT_GRACE_PERIOD_DAYS,
            status=GroupStatus.RECRUITING.value,
            created_by=creator.id,
        )
        for field in FLAG_FIELDS:
            setattr(group, field, to_bool(fields.get(field)))

        db.session.add(group)
        db.session.flush()

        # Creator becomes the coordinator
        db.session.add(GroupMember(
            group_id=group.id,
            user_id=creator.id,
            role=MemberRole.ADMIN.value
        ))
        db.session.commit()

        logger.info("Group %s created by user %s", group.id, creator.id)
        return group.to_summary()

    except GroupCreationError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        raise GroupCreationError(f"Failed to create group: {str(e)}") from e


# ============================================================
# LIST GROUPS
# ============================================================

def list_groups_for_user(user_id):
    """Groups the user belongs to, newest first."""
    return Group.query.join(GroupMember).filter(
        GroupMember.user_id == user_id
    ).order_by(Group.created_at.desc(), Group.id.desc()).all()


def get_group(group_id):
    return db.session.get(Group, group_id)
