"""
GROUP CREATION WIZARD
=====================

Four-step form state machine:

    1 Basic info -> 2 Financial config -> 3 Advanced rules -> 4 Confirmation
    4 Confirmation -> Submitting -> Succeeded | Failed

RULES:
1. A step only advances when every validated field of that step passes
2. A step's values reach the payload only when the step is completed
3. Failed submission stays on step 4 and can be retried
4. Users never see the underlying error of a failed submission
5. Successful submission resets the session after a display delay
"""

import logging
from collections.abc import Mapping
from enum import Enum

from tanda.models import PaymentFrequency
from tanda.services.form_session import (
    STEP_BASIC_INFO, STEP_CONFIRMATION, STEP_FIELDS, STEP_TITLES,
    STEP_VALIDATED_FIELDS, TOTAL_STEPS, BOOLEAN_FIELDS, WizardStatus
)
from tanda.services.rendering import (
    format_amount, frequency_label, type_label,
    render_confirmation, render_error, render_success
)
from tanda.services.scheduling import ImmediateScheduler
from tanda.services.validators import (
    DESCRIPTION_MAX_LENGTH, clean_text, parse_integer, parse_number,
    to_bool, validate_field
)

logger = logging.getLogger(__name__)

DEFAULT_SUCCESS_DELAY = 2.0
NAVIGATION_TARGET = 'groups'
DEFAULT_FREQUENCY_DAYS = 30

# Features listed in the confirmation summary when enabled
CONFIRMATION_FEATURES = (
    ('require_id', 'Verificacion de identidad requerida'),
    ('early_withdrawals', 'Retiros anticipados permitidos'),
    ('late_penalties', 'Multas por pagos tardios'),
    ('auto_suspend', 'Suspension automatica tras 3 faltas'),
    ('notify_payment_reminder', 'Recordatorios de pago automaticos'),
)


class WizardError(Exception):
    """Base exception for wizard operations"""
    pass


class AdvanceOutcome(Enum):
    ADVANCED = 'advanced'
    BLOCKED = 'blocked'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    IGNORED = 'ignored'


# ============================================================
# DERIVED DISPLAY VALUES
# ============================================================

def calculate_total_per_cycle(contribution, max_participants):
    """Contribution x participants, or None when either is not numeric."""
    amount = parse_number(contribution)
    participants = parse_integer(max_participants)
    if amount is None or participants is None:
        return None
    return amount * participants


def frequency_days(frequency):
    member = PaymentFrequency.from_value(frequency)
    if member is None:
        return DEFAULT_FREQUENCY_DAYS
    return member.days


def estimated_duration_months(max_participants, frequency):
    """One payout per participant; months rounded half up."""
    participants = parse_integer(max_participants) or 0
    total_days = participants * frequency_days(frequency)
    return int(total_days / 30 + 0.5)


def format_duration(months):
    if months < 12:
        return '1 mes' if months == 1 else f'{months} meses'

    years, remaining = divmod(months, 12)
    years_text = '1 año' if years == 1 else f'{years} años'
    if remaining == 0:
        return years_text
    months_text = '1 mes' if remaining == 1 else f'{remaining} meses'
    return f'{years_text} y {months_text}'


def build_confirmation_summary(fields):
    """Plain values for the confirmation view. Escaping happens at render time."""
    contribution = parse_number(fields.get('contribution'))
    participants = parse_integer(fields.get('max_participants'))
    total = calculate_total_per_cycle(fields.get('contribution'), fields.get('max_participants'))
    months = estimated_duration_months(fields.get('max_participants'), fields.get('payment_frequency'))

    return {
        'name': fields.get('name', ''),
        'type_label': type_label(fields.get('type')),
        'location': fields.get('location', ''),
        'virtual_meetings': 'Si' if fields.get('virtual_meetings') == 'yes' else 'No',
        'description': fields.get('description', ''),
        'contribution': format_amount(contribution) if contribution is not None else '0',
        'participants': str(participants) if participants is not None else '0',
        'frequency_label': frequency_label(fields.get('payment_frequency')),
        'start_date': fields.get('start_date') or 'No especificada',
        'features': [label for field, label in CONFIRMATION_FEATURES if fields.get(field)],
        'total_per_cycle': format_amount(total) if total is not None else '0',
        'estimated_duration': format_duration(months),
    }


def _clean_for_payload(field, value):
    if field in BOOLEAN_FIELDS:
        return to_bool(value)
    if field == 'virtual_meetings':
        return 'yes' if to_bool(value) else 'no'
    return clean_text(value)


def _group_attribute(group, name):
    if isinstance(group, Mapping):
        return group.get(name)
    return getattr(group, name, None)


# ============================================================
# CONTROLLER
# ============================================================

class WizardController:
    """
    Drives a FormSession through the four steps.

    ``create_group`` is called with the full field map on submission and
    must return an object (or mapping) with at least ``name`` and ``id``.
    Raising or returning nothing both count as failure.
    """

    def __init__(self, session, create_group, navigate=None, scheduler=None,
                 success_delay=DEFAULT_SUCCESS_DELAY):
        if not callable(create_group):
            raise WizardError("create_group must be callable")
        self.session = session
        self.create_group = create_group
        self.navigate = navigate
        self.scheduler = scheduler or ImmediateScheduler()
        self.success_delay = success_delay
        self.view = None
        self.created_group = None
        self._reset_handle = None
        self._mounted = False

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------

    def mount(self):
        """Called by the host when the creation panel becomes active."""
        if not self._mounted:
            self.session.subscribe(self._on_field_change)
            self._mounted = True
            logger.debug("Wizard mounted for session %s", self.session.session_id)
        if self.session.current_step == STEP_CONFIRMATION and self.view is None:
            self.view = self._confirmation_view()
        return self

    def unmount(self):
        if self._mounted:
            self.session.unsubscribe(self._on_field_change)
            self._mounted = False

    def _on_field_change(self, field, value):
        if field == 'description' and value is not None:
            text = str(value)
            if len(text) > DESCRIPTION_MAX_LENGTH:
                self.session.set_value(field, text[:DESCRIPTION_MAX_LENGTH])
        self.clear_field_error(field)

    # ------------------------------------------------------------
    # Field errors
    # ------------------------------------------------------------

    def show_field_error(self, field, message):
        self.session.validation_errors[field] = message

    def clear_field_error(self, field):
        self.session.validation_errors.pop(field, None)

    def blur(self, field):
        """Validate one field as it loses focus."""
        result = validate_field(field, self.session.get(field))
        if result:
            self.clear_field_error(field)
        else:
            self.show_field_error(field, result.message)
        return result

    def validate_current_step(self):
        is_valid = True
        for field in STEP_VALIDATED_FIELDS[self.session.current_step]:
            if not self.blur(field):
                is_valid = False
        return is_valid

    def save_current_step_data(self):
        for field in STEP_FIELDS[self.session.current_step]:
            self.session.fields[field] = _clean_for_payload(field, self.session.get(field))

    # ------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------

    def advance(self):
        session = self.session
        if session.is_busy:
            return AdvanceOutcome.IGNORED

        if not self.validate_current_step():
            logger.info(
                "Step %s blocked for session %s: %s",
                session.current_step, session.session_id,
                ', '.join(sorted(session.validation_errors))
            )
            return AdvanceOutcome.BLOCKED

        self.save_current_step_data()

        if session.current_step < TOTAL_STEPS:
            session.current_step += 1
            session.status = WizardStatus.EDITING
            logger.debug("Session %s advanced to step %s", session.session_id, session.current_step)
            if session.current_step == STEP_CONFIRMATION:
                self.view = self._confirmation_view()
            return AdvanceOutcome.ADVANCED

        return self._submit()

    def retreat(self):
        session = self.session
        if session.is_busy:
            return False
        if session.current_step <= STEP_BASIC_INFO:
            return False
        session.current_step -= 1
        session.status = WizardStatus.EDITING
        logger.debug("Session %s went back to step %s", session.session_id, session.current_step)
        return True

    def retry(self):
        """Show the confirmation summary again after a failed submission."""
        if self.session.current_step != STEP_CONFIRMATION:
            return False
        self.session.status = WizardStatus.EDITING
        self.view = self._confirmation_view()
        return True

    def cancel(self):
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
        self.session.reset()
        self.view = None
        self.created_group = None
        logger.info("Session %s cancelled", self.session.session_id)

    # ------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------

    def _submit(self):
        session = self.session
        session.status = WizardStatus.SUBMITTING

        try:
            group = self.create_group(dict(session.fields))
        except Exception:
            logger.exception("Group creation failed for session %s", session.session_id)
            group = None

        if not group:
            session.status = WizardStatus.FAILED
            self.view = render_error()
            return AdvanceOutcome.FAILED

        group_name = _group_attribute(group, 'name') or ''
        group_id = _group_attribute(group, 'id') or ''

        session.status = WizardStatus.SUCCEEDED
        self.created_group = group
        self.view = render_success(group_name, group_id)
        logger.info("Session %s created group %s", session.session_id, group_id)

        self._reset_handle = self.scheduler.call_later(self.success_delay, self._finish_success)
        return AdvanceOutcome.SUCCEEDED

    def _finish_success(self):
        self._reset_handle = None
        self.session.reset()
        logger.debug("Session %s reset after success", self.session.session_id)
        if self.navigate is not None:
            self.navigate(NAVIGATION_TARGET)

    def _confirmation_view(self):
        return render_confirmation(build_confirmation_summary(self.session.fields))

    # ------------------------------------------------------------
    # Display state
    # ------------------------------------------------------------

    @property
    def progress(self):
        return (self.session.current_step - 1) / (TOTAL_STEPS - 1) * 100

    def step_states(self):
        states = []
        for step in range(1, TOTAL_STEPS + 1):
            if step < self.session.current_step:
                state = 'completed'
            elif step == self.session.current_step:
                state = 'active'
            else:
                state = 'pending'
            states.append({'step': step, 'title': STEP_TITLES[step], 'state': state})
        return states

    @property
    def next_label(self):
        if self.session.current_step == TOTAL_STEPS:
            return 'Crear Grupo'
        return 'Continuar'

    def to_dict(self):
        session = self.session
        return {
            'current_step': session.current_step,
            'status': session.status.value,
            'progress': self.progress,
            'steps': self.step_states(),
            'required_fields': list(session.required_fields),
            'errors': dict(session.validation_errors),
            'values': session.snapshot(),
            'next_label': self.next_label,
            'show_previous': session.current_step > STEP_BASIC_INFO,
            'view': str(self.view) if self.view is not None else None,
        }
