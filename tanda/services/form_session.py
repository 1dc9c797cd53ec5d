"""
FORM SESSION
============

State of one group creation attempt.

The session is owned by the host (an HTTP request, a test, an interactive
shell) and handed to both the wizard controller and the suggestion engine.
Field writes go through update_field(), which notifies every subscriber,
so the controller and the engine react to the same change notification.
"""

import uuid
from enum import Enum


TOTAL_STEPS = 4

STEP_BASIC_INFO = 1
STEP_FINANCIAL = 2
STEP_ADVANCED_RULES = 3
STEP_CONFIRMATION = 4

STEP_TITLES = {
    STEP_BASIC_INFO: 'Informacion Basica',
    STEP_FINANCIAL: 'Configuracion Financiera',
    STEP_ADVANCED_RULES: 'Reglas Avanzadas',
    STEP_CONFIRMATION: 'Confirmacion',
}

# Fields copied into the payload when each step is completed
STEP_FIELDS = {
    STEP_BASIC_INFO: (
        'name', 'description', 'type', 'location', 'virtual_meetings',
    ),
    STEP_FINANCIAL: (
        'contribution', 'max_participants', 'payment_frequency', 'start_date',
        'early_withdrawals', 'insurance_required', 'late_penalties',
    ),
    STEP_ADVANCED_RULES: (
        'require_id', 'require_income', 'require_references',
        'require_min_trust_score', 'rules', 'penalty_amount', 'grace_period',
        'auto_suspend', 'require_guarantor', 'notify_payment_reminder',
        'notify_meeting_reminder', 'notify_turn_update', 'notify_new_members',
    ),
    STEP_CONFIRMATION: (
        'accept_terms',
    ),
}

# Fields checked by a validator when the step is advanced
STEP_VALIDATED_FIELDS = {
    STEP_BASIC_INFO: ('name', 'description', 'type', 'location'),
    STEP_FINANCIAL: ('contribution', 'max_participants', 'payment_frequency', 'start_date'),
    STEP_ADVANCED_RULES: ('rules', 'penalty_amount', 'grace_period'),
    STEP_CONFIRMATION: ('accept_terms',),
}

# Fields that must hold a value; only enforced on the active step
STEP_REQUIRED_FIELDS = {
    STEP_BASIC_INFO: ('name', 'description', 'type', 'location'),
    STEP_FINANCIAL: ('contribution', 'max_participants', 'payment_frequency'),
    STEP_ADVANCED_RULES: (),
    STEP_CONFIRMATION: ('accept_terms',),
}

BOOLEAN_FIELDS = frozenset({
    'early_withdrawals', 'insurance_required', 'late_penalties',
    'require_id', 'require_income', 'require_references',
    'require_min_trust_score', 'auto_suspend', 'require_guarantor',
    'notify_payment_reminder', 'notify_meeting_reminder',
    'notify_turn_update', 'notify_new_members', 'accept_terms',
})

ALL_FIELDS = tuple(
    field for step in sorted(STEP_FIELDS) for field in STEP_FIELDS[step]
)

DEFAULT_VALUES = dict(
    {field: False for field in BOOLEAN_FIELDS},
    virtual_meetings='no',
)


class FormSessionError(Exception):
    """Base exception for form session operations"""
    pass


class UnknownFieldError(FormSessionError):
    """Raised when writing a field the wizard does not have"""
    pass


class WizardStatus(Enum):
    EDITING = 'editing'
    SUBMITTING = 'submitting'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


def step_of(field):
    """Return the step number a field belongs to."""
    for step, fields in STEP_FIELDS.items():
        if field in fields:
            return step
    raise UnknownFieldError(f"Unknown field: {field}")


class FormSession:
    """
    Accumulated state of one group creation attempt.

    ``values`` mirrors what is currently typed in the form.
    ``fields`` only receives a step's values once that step validated
    and the user advanced; it is the payload handed to group creation.
    """

    def __init__(self, session_id=None):
        self.session_id = session_id or uuid.uuid4().hex
        self._listeners = []
        self.reset()

    def reset(self):
        self.current_step = STEP_BASIC_INFO
        self.status = WizardStatus.EDITING
        self.values = dict(DEFAULT_VALUES)
        self.fields = {}
        self.validation_errors = {}

    # ------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------

    def subscribe(self, listener):
        """Register ``listener(field, value)`` for field changes."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def update_field(self, field, value):
        """Write a field and notify every subscriber."""
        if field not in ALL_FIELDS:
            raise UnknownFieldError(f"Unknown field: {field}")
        self.values[field] = value
        for listener in list(self._listeners):
            listener(field, value)

    def set_value(self, field, value):
        """Write a field without notifying (used by listeners themselves)."""
        if field not in ALL_FIELDS:
            raise UnknownFieldError(f"Unknown field: {field}")
        self.values[field] = value

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------

    def get(self, field, default=None):
        return self.values.get(field, default)

    def snapshot(self):
        """Copy of the current form values."""
        return dict(self.values)

    @property
    def required_fields(self):
        """Fields required right now. Other steps' fields are not required."""
        return STEP_REQUIRED_FIELDS[self.current_step]

    def is_required(self, field):
        return field in self.required_fields

    @property
    def is_busy(self):
        """Navigation is locked while submitting or showing the success view."""
        return self.status in (WizardStatus.SUBMITTING, WizardStatus.SUCCEEDED)

    # ------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------

    def to_dict(self):
        return {
            'session_id': self.session_id,
            'current_step': self.current_step,
            'status': self.status.value,
            'values': dict(self.values),
            'fields': dict(self.fields),
            'validation_errors': dict(self.validation_errors),
        }

    @classmethod
    def from_dict(cls, data):
        session = cls(session_id=data.get('session_id'))
        step = data.get('current_step', STEP_BASIC_INFO)
        if step not in STEP_FIELDS:
            step = STEP_BASIC_INFO
        session.current_step = step
        try:
            session.status = WizardStatus(data.get('status', WizardStatus.EDITING.value))
        except ValueError:
            session.status = WizardStatus.EDITING
        # A request that died mid-submit leaves nothing in flight
        if session.status == WizardStatus.SUBMITTING:
            session.status = WizardStatus.EDITING
        session.values.update({
            key: value for key, value in data.get('values', {}).items()
            if key in ALL_FIELDS
        })
        session.fields = {
            key: value for key, value in data.get('fields', {}).items()
            if key in ALL_FIELDS
        }
        session.validation_errors = dict(data.get('validation_errors', {}))
        return session

    def __repr__(self):
        return f'<FormSession {self.session_id} step={self.current_step} status={self.status.value}>'
