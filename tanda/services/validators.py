"""
FIELD VALIDATORS
================

Field-level rules for the group creation wizard.

Validators never raise. Each one takes the raw value a user typed
(string, number or boolean) and returns a ValidationResult.
The same rules run on blur, on step advance and again server-side
before a group is persisted.
"""

import math
from datetime import date

from tanda.models import GroupType, PaymentFrequency


NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 50
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 250
LOCATION_MIN_LENGTH = 3
LOCATION_MAX_LENGTH = 120
CONTRIBUTION_MIN = 100
CONTRIBUTION_MAX = 50000
PARTICIPANTS_MIN = 2
PARTICIPANTS_MAX = 50
GRACE_PERIOD_MAX = 15
RULES_MAX_LENGTH = 500

TRUE_VALUES = {'true', 'on', '1', 'yes', 'si'}


class ValidationResult:
    """Outcome of a single field check."""

    __slots__ = ('ok', 'message')

    def __init__(self, ok, message=None):
        self.ok = ok
        self.message = message

    def __bool__(self):
        return self.ok

    def __eq__(self, other):
        if not isinstance(other, ValidationResult):
            return NotImplemented
        return self.ok == other.ok and self.message == other.message

    def __repr__(self):
        return f'<ValidationResult ok={self.ok} message={self.message!r}>'

    def to_dict(self):
        return {'ok': self.ok, 'message': self.message}


PASSED = ValidationResult(True)


def _fail(message):
    return ValidationResult(False, message)


# ============================================================
# PARSING HELPERS
# ============================================================

def clean_text(value):
    """Return the trimmed string form of a raw field value."""
    if value is None:
        return ''
    return str(value).strip()


def parse_number(value):
    """Parse a raw value as a finite float. Returns None when not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = clean_text(value)
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number


def parse_integer(value):
    """Parse a raw value as an integer. Returns None for non-integral input."""
    number = parse_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def parse_date(value):
    """Parse an ISO ``YYYY-MM-DD`` date. Returns None when empty or invalid."""
    if isinstance(value, date):
        return value
    text = clean_text(value)
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def to_bool(value):
    """Checkbox semantics: True for truthy markers, False otherwise."""
    if isinstance(value, bool):
        return value
    return clean_text(value).lower() in TRUE_VALUES


def is_blank(value):
    return clean_text(value) == ''


# ============================================================
# STEP 1 - BASIC INFORMATION
# ============================================================

def validate_name(value):
    name = clean_text(value)
    if len(name) < NAME_MIN_LENGTH:
        return _fail('El nombre debe tener al menos 3 caracteres')
    if len(name) > NAME_MAX_LENGTH:
        return _fail('El nombre no puede exceder 50 caracteres')
    return PASSED


def validate_description(value):
    description = clean_text(value)
    if len(description) < DESCRIPTION_MIN_LENGTH:
        return _fail('La descripcion debe tener al menos 10 caracteres')
    if len(description) > DESCRIPTION_MAX_LENGTH:
        return _fail('La descripcion no puede exceder 250 caracteres')
    return PASSED


def validate_type(value):
    group_type = clean_text(value)
    if not group_type:
        return _fail('Selecciona un tipo de grupo')
    if GroupType.from_value(group_type) is None:
        return _fail('Tipo de grupo no valido')
    return PASSED


def validate_location(value):
    location = clean_text(value)
    if len(location) < LOCATION_MIN_LENGTH:
        return _fail('La ubicacion debe tener al menos 3 caracteres')
    if len(location) > LOCATION_MAX_LENGTH:
        return _fail('La ubicacion no puede exceder 120 caracteres')
    return PASSED


# ============================================================
# STEP 2 - FINANCIAL CONFIGURATION
# ============================================================

def validate_contribution(value):
    contribution = parse_number(value)
    if contribution is None:
        return _fail('La contribucion es requerida')
    if contribution < CONTRIBUTION_MIN:
        return _fail('La contribucion minima es L. 100')
    if contribution > CONTRIBUTION_MAX:
        return _fail('La contribucion maxima es L. 50,000')
    return PASSED


def validate_max_participants(value):
    if is_blank(value) or parse_number(value) is None:
        return _fail('El numero de participantes es requerido')
    participants = parse_integer(value)
    if participants is None:
        return _fail('El numero de participantes debe ser un numero entero')
    if participants < PARTICIPANTS_MIN:
        return _fail('Minimo 2 participantes')
    if participants > PARTICIPANTS_MAX:
        return _fail('Maximo 50 participantes')
    return PASSED


def validate_payment_frequency(value):
    frequency = clean_text(value)
    if not frequency:
        return _fail('Selecciona una frecuencia de pago')
    if PaymentFrequency.from_value(frequency) is None:
        return _fail('Frecuencia de pago no valida')
    return PASSED


def validate_start_date(value):
    """Optional. When given it must be an ISO date."""
    if is_blank(value):
        return PASSED
    if parse_date(value) is None:
        return _fail('La fecha de inicio no es valida')
    return PASSED


# ============================================================
# STEP 3 - ADVANCED RULES
# ============================================================

def validate_rules(value):
    """Optional free text."""
    if len(clean_text(value)) > RULES_MAX_LENGTH:
        return _fail('Las reglas no pueden exceder 500 caracteres')
    return PASSED


def validate_penalty_amount(value):
    if is_blank(value):
        return PASSED
    penalty = parse_number(value)
    if penalty is None or penalty < 0:
        return _fail('Monto de multa debe ser un numero valido')
    return PASSED


def validate_grace_period(value):
    if is_blank(value):
        return PASSED
    grace = parse_integer(value)
    if grace is None or grace < 0 or grace > GRACE_PERIOD_MAX:
        return _fail('Periodo de gracia debe ser entre 0 y 15 dias')
    return PASSED


# ============================================================
# STEP 4 - CONFIRMATION
# ============================================================

def validate_accept_terms(value):
    if not to_bool(value):
        return _fail('Debes aceptar los terminos y condiciones')
    return PASSED


FIELD_VALIDATORS = {
    'name': validate_name,
    'description': validate_description,
    'type': validate_type,
    'location': validate_location,
    'contribution': validate_contribution,
    'max_participants': validate_max_participants,
    'payment_frequency': validate_payment_frequency,
    'start_date': validate_start_date,
    'rules': validate_rules,
    'penalty_amount': validate_penalty_amount,
    'grace_period': validate_grace_period,
    'accept_terms': validate_accept_terms,
}


def validate_field(field, value):
    """Run the rule registered for ``field``. Fields without a rule pass."""
    validator = FIELD_VALIDATORS.get(field)
    if validator is None:
        return PASSED
    return validator(value)


def validate_fields(values, fields):
    """
    Validate several fields at once.

    Returns a dict of field -> error message for every failing field.
    """
    errors = {}
    for field in fields:
        result = validate_field(field, values.get(field))
        if not result:
            errors[field] = result.message
    return errors
