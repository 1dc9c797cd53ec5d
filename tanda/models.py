from datetime import datetime
from enum import Enum
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from tanda.extensions import db


# ============================================================
# ENUMERATIONS
# ============================================================
class LabeledEnum(Enum):
    """
    Enum whose members carry their display label next to the stored value.

    Every member is declared as ``(value, label, ...)`` so a new member
    cannot exist without a label.
    """

    def __new__(cls, value, label, *extra):
        obj = object.__new__(cls)
        obj._value_ = value
        obj.label = label
        return obj

    @classmethod
    def from_value(cls, value):
        """Return the member for a raw value, or None when unknown."""
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def values(cls):
        return [member.value for member in cls]


class GroupType(LabeledEnum):
    FAMILIAR = ('familiar', 'Familiar')
    LABORAL = ('laboral', 'Laboral')
    COMUNITARIO = ('comunitario', 'Comunitario')
    COMERCIAL = ('comercial', 'Comercial')


class PaymentFrequency(LabeledEnum):
    WEEKLY = ('weekly', 'Semanal', 7)
    BIWEEKLY = ('biweekly', 'Quincenal', 14)
    MONTHLY = ('monthly', 'Mensual', 30)

    def __init__(self, value, label, days):
        self.days = days


class MemberRole(Enum):
    ADMIN = 'admin'
    MEMBER = 'member'


class GroupStatus(LabeledEnum):
    RECRUITING = ('recruiting', 'Reclutando miembros')
    ACTIVE = ('active', 'Activo')
    COMPLETED = ('completed', 'Completado')


# ============================================================
# USER MODEL
# ============================================================
class User(UserMixin, db.Model):
    """
    Represents a registered user in the system.
    A user who creates a tanda becomes its coordinator (group admin).
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    groups_created = db.relationship('Group', backref='creator', lazy='dynamic')
    memberships = db.relationship('GroupMember', backref='user', lazy='dynamic')

    def set_password(self, password):
        """Hash and set the user's password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against stored hash."""
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.name}>'


# ============================================================
# GROUP MODEL
# ============================================================
class Group(db.Model):
    """
    Represents a tanda (rotating savings group).

    Created through the group creation wizard. The creator is enrolled
    as the first member with the admin role.
    """
    __tablename__ = 'groups'

    id = db.Column(db.Integer, primary_key=True)

    # Basic information (wizard step 1)
    name = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(250), nullable=False)
    group_type = db.Column(db.String(20), nullable=False)
    location = db.Column(db.String(120), nullable=False)
    virtual_meetings = db.Column(db.Boolean, default=False, nullable=False)

    # Financial configuration (wizard step 2)
    contribution_amount = db.Column(db.Float, nullable=False)
    max_participants = db.Column(db.Integer, nullable=False)
    payment_frequency = db.Column(db.String(20), nullable=False)
    start_date = db.Column(db.Date, nullable=True)
    early_withdrawals = db.Column(db.Boolean, default=False, nullable=False)
    insurance_required = db.Column(db.Boolean, default=False, nullable=False)
    late_penalties = db.Column(db.Boolean, default=False, nullable=False)

    # Advanced rules (wizard step 3)
    require_id = db.Column(db.Boolean, default=False, nullable=False)
    require_income = db.Column(db.Boolean, default=False, nullable=False)
    require_references = db.Column(db.Boolean, default=False, nullable=False)
    require_min_trust_score = db.Column(db.Boolean, default=False, nullable=False)
    rules = db.Column(db.Text, nullable=True)
    penalty_amount = db.Column(db.Float, default=0.0, nullable=False)
    grace_period_days = db.Column(db.Integer, default=3, nullable=False)
    auto_suspend = db.Column(db.Boolean, default=False, nullable=False)
    require_guarantor = db.Column(db.Boolean, default=False, nullable=False)
    notify_payment_reminder = db.Column(db.Boolean, default=False, nullable=False)
    notify_meeting_reminder = db.Column(db.Boolean, default=False, nullable=False)
    notify_turn_update = db.Column(db.Boolean, default=False, nullable=False)
    notify_new_members = db.Column(db.Boolean, default=False, nullable=False)

    status = db.Column(db.String(20), default=GroupStatus.RECRUITING.value, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    members = db.relationship('GroupMember', backref='group', lazy='dynamic',
                              cascade='all, delete-orphan')

    def get_member_count(self):
        """Return total number of members in the group."""
        return self.members.count()

    def get_total_per_cycle(self):
        """Pool collected in one cycle when the group is full."""
        return self.contribution_amount * self.max_participants

    @property
    def status_label(self):
        status = GroupStatus.from_value(self.status)
        return status.label if status else self.status

    def to_summary(self):
        return {
            'id': self.id,
            'name': self.name,
            'status': self.status,
            'type': self.group_type,
            'contribution': self.contribution_amount,
            'max_participants': self.max_participants,
            'payment_frequency': self.payment_frequency,
            'members': self.get_member_count(),
        }

    def __repr__(self):
        return f'<Group {self.name}>'


# ============================================================
# GROUP MEMBER MODEL
# ============================================================
class GroupMember(db.Model):
    """
    Represents membership of a user in a group.
    Tracks role (admin/member) and join date.
    """
    __tablename__ = 'group_members'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    role = db.Column(db.String(20), default=MemberRole.MEMBER.value)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Prevent duplicate memberships
    __table_args__ = (
        db.UniqueConstraint('group_id', 'user_id', name='unique_group_member'),
    )

    def __repr__(self):
        return f'<GroupMember user={self.user_id} group={self.group_id}>'
