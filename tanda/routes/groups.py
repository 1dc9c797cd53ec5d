"""
GROUP ROUTES
============

"My groups" view and the group creation wizard.

The wizard's FormSession lives in the signed session cookie between
requests. Each request rebuilds the controller and the suggestion engine
around it. Requests that move the wizard carry the values they act on,
so a stale cookie cannot validate old input.
"""

from flask import (
    Blueprint, render_template, redirect, url_for, request, jsonify,
    session, current_app
)
from flask_login import login_required, current_user
from tanda.services.form_session import FormSession, ALL_FIELDS
from tanda.services.group_service import create_group_from_form, list_groups_for_user
from tanda.services.suggestion_service import SuggestionEngine
from tanda.services.wizard_service import WizardController, AdvanceOutcome
from tanda.services.validators import RULES_MAX_LENGTH

groups_bp = Blueprint('groups', __name__)

SESSION_KEY = 'create_group_form'

# Navigation targets the wizard may request
NAVIGATION_ENDPOINTS = {
    'groups': 'groups.list_groups',
}

SCALAR_TYPES = (str, int, float, bool, type(None))

MAX_VALUE_LENGTH = RULES_MAX_LENGTH


# ============== HELPERS ==============
class _Wizard:
    """
    Controller + engine around the request's FormSession.

    Only the controller is subscribed to field changes. The engine
    recomputes once per response in state().
    """

    def __init__(self):
        data = session.get(SESSION_KEY)
        self.form_session = FormSession.from_dict(data) if data else FormSession()
        self.navigation = None

        config = current_app.config
        user_id = current_user.id
        self.controller = WizardController(
            self.form_session,
            create_group=lambda fields: create_group_from_form(fields, user_id),
            navigate=self._navigate,
            success_delay=config['SUCCESS_REDIRECT_SECONDS'],
        ).mount()
        self.engine = SuggestionEngine(
            self.form_session,
            debounce=config['SUGGESTION_DEBOUNCE_SECONDS'],
            highlight=config['SUGGESTION_HIGHLIGHT_SECONDS'],
        )

    def _navigate(self, target):
        self.navigation = url_for(NAVIGATION_ENDPOINTS[target])

    def apply_updates(self, updates):
        for field, value in updates.items():
            self.form_session.update_field(field, value)

    def save(self):
        session[SESSION_KEY] = self.form_session.to_dict()

    def state(self, **extra):
        self.engine.refresh()
        payload = self.controller.to_dict()
        payload['suggestions'] = self.engine.to_dict()
        payload.update(extra)
        return payload


def _json_body():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return None
    return payload


def _valid_value(value):
    if not isinstance(value, SCALAR_TYPES):
        return False
    return not isinstance(value, str) or len(value) <= MAX_VALUE_LENGTH


def _field_updates(payload):
    """Known fields with scalar values, or None when anything else is sent."""
    if any(field not in ALL_FIELDS for field in payload):
        return None
    if not all(_valid_value(value) for value in payload.values()):
        return None
    return payload


def _bad_request(message):
    return jsonify({'status': 'error', 'error': message}), 400


# ============== MY GROUPS ==============
@groups_bp.route('/groups')
@login_required
def list_groups():
    my_groups = list_groups_for_user(current_user.id)
    return render_template('groups/list.html', groups=my_groups)


# ============== CREATE GROUP WIZARD ==============
@groups_bp.route('/groups/create')
@login_required
def create_group():
    wizard = _Wizard()
    wizard.save()
    return render_template(
        'groups/create.html',
        state=wizard.state(),
        suggestions_html=wizard.engine.render(),
        view=wizard.controller.view,
        fields=ALL_FIELDS,
    )


@groups_bp.route('/groups/create/state')
@login_required
def wizard_state():
    wizard = _Wizard()
    return jsonify(wizard.state())


@groups_bp.route('/groups/create/fields', methods=['POST'])
@login_required
def update_fields():
    payload = _json_body()
    if payload is None:
        return _bad_request('Solicitud invalida')

    updates = _field_updates(payload)
    if updates is None:
        return _bad_request('Campo desconocido o valor invalido')

    wizard = _Wizard()
    wizard.apply_updates(updates)
    wizard.save()
    return jsonify(wizard.state())


@groups_bp.route('/groups/create/validate', methods=['POST'])
@login_required
def validate_field():
    payload = _json_body()
    if payload is None or payload.get('field') not in ALL_FIELDS:
        return _bad_request('Campo desconocido')

    wizard = _Wizard()
    field = payload['field']
    if 'value' in payload:
        if not _valid_value(payload['value']):
            return _bad_request('Valor invalido')
        wizard.form_session.update_field(field, payload['value'])

    result = wizard.controller.blur(field)
    wizard.save()
    return jsonify(wizard.state(field=field, valid=result.ok, message=result.message))


@groups_bp.route('/groups/create/next', methods=['POST'])
@login_required
def next_step():
    # Optional body: the values currently shown on the step being advanced
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    updates = _field_updates(payload) if isinstance(payload, dict) else None
    if updates is None:
        return _bad_request('Campo desconocido o valor invalido')

    wizard = _Wizard()
    wizard.apply_updates(updates)
    outcome = wizard.controller.advance()
    wizard.save()

    if outcome == AdvanceOutcome.SUCCEEDED:
        group = wizard.controller.created_group
        return jsonify(wizard.state(
            status='success',
            group={'id': group['id'], 'name': group['name']},
            view=str(wizard.controller.view),
            redirect=wizard.navigation or url_for('groups.list_groups'),
            redirect_after=current_app.config['SUCCESS_REDIRECT_SECONDS'],
        )), 201

    if outcome == AdvanceOutcome.FAILED:
        return jsonify(wizard.state(status='failure'))

    if outcome == AdvanceOutcome.BLOCKED:
        return jsonify(wizard.state(status='blocked')), 422

    return jsonify(wizard.state(status=outcome.value))


@groups_bp.route('/groups/create/previous', methods=['POST'])
@login_required
def previous_step():
    wizard = _Wizard()
    moved = wizard.controller.retreat()
    wizard.save()
    return jsonify(wizard.state(moved=moved))


@groups_bp.route('/groups/create/retry', methods=['POST'])
@login_required
def retry_submission():
    wizard = _Wizard()
    wizard.controller.retry()
    wizard.save()
    return jsonify(wizard.state())


@groups_bp.route('/groups/create/cancel', methods=['POST'])
@login_required
def cancel_wizard():
    wizard = _Wizard()
    wizard.controller.cancel()
    wizard.save()
    if request.is_json:
        return jsonify(wizard.state())
    return redirect(url_for('groups.list_groups'))


@groups_bp.route('/groups/create/suggestions/apply', methods=['POST'])
@login_required
def apply_suggestion():
    payload = _json_body()
    if payload is None or 'value' not in payload or not _valid_value(payload['value']):
        return _bad_request('Solicitud invalida')

    wizard = _Wizard()
    if not wizard.engine.apply(payload.get('field'), payload['value']):
        return _bad_request('No se pudo aplicar la sugerencia')

    wizard.save()
    return jsonify(wizard.state(
        applied=payload['field'],
        highlight_seconds=current_app.config['SUGGESTION_HIGHLIGHT_SECONDS'],
    ))
