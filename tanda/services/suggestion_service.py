"""
SMART SUGGESTIONS
=================

Advisory recommendations for the group creation form.

The rule set is a pure function of the form values (and today's date):
the same values always produce the same suggestions. Suggestions never
block the wizard. Applying a suggestion writes its value through the
session's normal update path, which re-triggers validation and a new
(debounced) recompute.
"""

import logging
from datetime import date, timedelta

from tanda.services.form_session import ALL_FIELDS
from tanda.services.rendering import format_amount, render_suggestions
from tanda.services.scheduling import Debouncer, ImmediateScheduler
from tanda.services.validators import clean_text, parse_date, parse_number

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.5
DEFAULT_HIGHLIGHT = 2.0

SUGGESTION_TYPES = ('warning', 'info', 'success', 'tip')
RISK_LEVELS = ('low', 'medium', 'high')

# Field changes that schedule a recompute
TRACKED_FIELDS = frozenset({
    'name', 'contribution', 'max_participants', 'payment_frequency',
    'start_date', 'type', 'penalty_amount', 'grace_period',
})


class SuggestionError(Exception):
    """Base exception for suggestion operations"""
    pass


# ============================================================
# SUGGESTION TYPES
# ============================================================

class SuggestionAction:
    """One-click fix: write ``value`` into ``field``."""

    def __init__(self, label, field, value):
        self.label = label
        self.field = field
        self.value = value

    def to_dict(self):
        return {'label': self.label, 'field': self.field, 'value': self.value}

    def __eq__(self, other):
        if not isinstance(other, SuggestionAction):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f'<SuggestionAction {self.field}={self.value!r}>'


class SuggestionDetails:
    def __init__(self, title, items):
        self.title = title
        self.items = list(items)

    def to_dict(self):
        return {'title': self.title, 'items': list(self.items)}

    def __eq__(self, other):
        if not isinstance(other, SuggestionDetails):
            return NotImplemented
        return self.to_dict() == other.to_dict()


class Suggestion:
    """A single advisory message shown in the suggestions panel."""

    def __init__(self, type, title, message, icon, risk=None, actions=None, details=None):
        if type not in SUGGESTION_TYPES:
            raise SuggestionError(f"Invalid suggestion type: {type}")
        if risk is not None and risk not in RISK_LEVELS:
            raise SuggestionError(f"Invalid risk level: {risk}")
        self.type = type
        self.title = title
        self.message = message
        self.icon = icon
        self.risk = risk
        self.actions = list(actions or [])
        self.details = details

    def to_dict(self):
        return {
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'icon': self.icon,
            'risk': self.risk,
            'actions': [action.to_dict() for action in self.actions],
            'details': self.details.to_dict() if self.details else None,
        }

    def __eq__(self, other):
        if not isinstance(other, Suggestion):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f'<Suggestion {self.type} {self.title!r}>'


# ============================================================
# FORM SNAPSHOT
# ============================================================

def read_snapshot(values):
    """
    Numbers the rules work with. Anything missing or unparseable reads
    as 0 / empty, which switches the matching rules off.
    """
    contribution = parse_number(values.get('contribution')) or 0
    participants = parse_number(values.get('max_participants')) or 0
    penalty = parse_number(values.get('penalty_amount')) or 0
    grace = parse_number(values.get('grace_period')) or 0
    return {
        'name': clean_text(values.get('name')),
        'contribution': contribution,
        'max_participants': int(participants),
        'frequency': clean_text(values.get('payment_frequency')),
        'start_date': parse_date(values.get('start_date')),
        'type': clean_text(values.get('type')),
        'penalty': penalty,
        'grace_period': int(grace),
    }


def _iso_plus_days(today, days):
    return (today + timedelta(days=days)).isoformat()


def _next_monday(today):
    days_until_monday = (7 - today.weekday()) % 7 or 7
    return (today + timedelta(days=days_until_monday)).isoformat()


# ============================================================
# SUGGESTION RULES
# ============================================================

def check_contribution_amount(data, today):
    contribution = data['contribution']
    if contribution == 0:
        return []

    suggestions = []

    if contribution < 200:
        suggestions.append(Suggestion(
            type='warning',
            title='Contribución muy baja',
            message=(
                f'L. {format_amount(contribution)} puede ser difícil de gestionar y atraer '
                'participantes. Se recomienda un mínimo de L. 200 para mayor efectividad.'
            ),
            icon='exclamation-triangle',
            risk='medium',
            actions=[
                SuggestionAction('Ajustar a L. 500', 'contribution', '500'),
                SuggestionAction('Ajustar a L. 1,000', 'contribution', '1000'),
            ],
        ))

    if contribution > 5000:
        suggestions.append(Suggestion(
            type='info',
            title='Contribución alta detectada',
            message=(
                f'L. {format_amount(contribution)} requiere participantes con capacidad '
                'financiera sólida. Considera reducir si quieres más participantes.'
            ),
            icon='info-circle',
            risk='low',
            details=SuggestionDetails('Recomendaciones', [
                'Verificar capacidad de pago de participantes',
                'Considerar seguro o garantías adicionales',
                'Establecer proceso de verificación riguroso',
            ]),
        ))

    if 500 <= contribution <= 2000:
        suggestions.append(Suggestion(
            type='success',
            title='Monto óptimo seleccionado',
            message=(
                f'L. {format_amount(contribution)} es un monto equilibrado que atrae '
                'participantes comprometidos y es manejable para la mayoría.'
            ),
            icon='check-circle',
            risk='low',
        ))

    return suggestions


def check_participant_count(data, today):
    participants = data['max_participants']
    if participants == 0:
        return []

    suggestions = []

    if participants < 5:
        suggestions.append(Suggestion(
            type='warning',
            title='Pocos participantes',
            message=(
                f'{participants} participantes pueden crear un grupo vulnerable. '
                'Se recomienda mínimo 5 participantes para mejor estabilidad.'
            ),
            icon='users',
            risk='medium',
            actions=[
                SuggestionAction('Ajustar a 8 participantes', 'max_participants', '8'),
                SuggestionAction('Ajustar a 12 participantes', 'max_participants', '12'),
            ],
        ))

    if participants > 15:
        suggestions.append(Suggestion(
            type='info',
            title='Grupo grande detectado',
            message=(
                f'{participants} participantes requieren coordinación sólida. '
                'Considera dividir en múltiples grupos más pequeños.'
            ),
            icon='users',
            risk='medium',
            details=SuggestionDetails('Consideraciones', [
                'Mayor dificultad de coordinación',
                'Tiempo de espera más largo para recibir fondos',
                'Mayor riesgo de incumplimientos',
            ]),
        ))

    if 8 <= participants <= 12:
        suggestions.append(Suggestion(
            type='success',
            title='Tamaño de grupo óptimo',
            message=(
                f'{participants} participantes es un tamaño ideal que balancea '
                'diversidad con manejabilidad.'
            ),
            icon='check-circle',
            risk='low',
        ))

    return suggestions


def check_frequency(data, today):
    contribution = data['contribution']
    participants = data['max_participants']
    frequency = data['frequency']
    if not frequency or contribution == 0 or participants == 0:
        return []

    total_pool = contribution * participants
    suggestions = []

    if frequency == 'weekly' and total_pool > 10000:
        suggestions.append(Suggestion(
            type='tip',
            title='Considera frecuencia quincenal',
            message=(
                f'Para un fondo total de L. {format_amount(total_pool)}, pagos quincenales '
                'o mensuales pueden ser más manejables.'
            ),
            icon='calendar',
            risk='low',
            actions=[
                SuggestionAction('Cambiar a quincenal', 'payment_frequency', 'biweekly'),
                SuggestionAction('Cambiar a mensual', 'payment_frequency', 'monthly'),
            ],
        ))

    if frequency == 'monthly' and contribution < 500:
        suggestions.append(Suggestion(
            type='tip',
            title='Frecuencia semanal recomendada',
            message=(
                f'Para contribuciones pequeñas (L. {format_amount(contribution)}), pagos '
                'semanales mantienen el compromiso y momentum del grupo.'
            ),
            icon='calendar-alt',
            risk='low',
            actions=[
                SuggestionAction('Cambiar a semanal', 'payment_frequency', 'weekly'),
            ],
        ))

    return suggestions


def check_total_pool(data, today):
    contribution = data['contribution']
    participants = data['max_participants']
    if contribution == 0 or participants == 0:
        return []

    total_pool = contribution * participants
    suggestions = []

    if total_pool > 50000:
        suggestions.append(Suggestion(
            type='warning',
            title='Fondo total muy alto',
            message=(
                f'L. {format_amount(total_pool)} requiere medidas de seguridad avanzadas '
                'y verificación rigurosa de participantes.'
            ),
            icon='shield-alt',
            risk='high',
            details=SuggestionDetails('Medidas recomendadas', [
                'Contratos legales firmados',
                'Verificación de identidad completa',
                'Seguro de grupo o garantías',
                'Cuenta bancaria específica para el grupo',
            ]),
        ))

    if 5000 <= total_pool <= 25000:
        suggestions.append(Suggestion(
            type='success',
            title='Fondo total equilibrado',
            message=(
                f'L. {format_amount(total_pool)} es un monto manejable que permite '
                'crecimiento sin riesgos excesivos.'
            ),
            icon='piggy-bank',
            risk='low',
        ))

    return suggestions


def check_start_date(data, today):
    start_date = data['start_date']
    if start_date is None:
        return []

    days_until_start = (start_date - today).days
    suggestions = []

    if 0 <= days_until_start < 3:
        suggestions.append(Suggestion(
            type='warning',
            title='Poco tiempo de preparación',
            message=(
                f'El grupo inicia en {days_until_start} días. Considera dar más tiempo '
                'para reclutar y verificar participantes.'
            ),
            icon='clock',
            risk='medium',
            actions=[
                SuggestionAction('Postponer 1 semana', 'start_date', _iso_plus_days(today, 7)),
                SuggestionAction('Postponer 2 semanas', 'start_date', _iso_plus_days(today, 14)),
            ],
        ))

    if days_until_start < 0:
        suggestions.append(Suggestion(
            type='warning',
            title='Fecha de inicio en el pasado',
            message='La fecha seleccionada ya pasó. Por favor selecciona una fecha futura.',
            icon='exclamation-triangle',
            risk='high',
            actions=[
                SuggestionAction('Usar mañana', 'start_date', _iso_plus_days(today, 1)),
                SuggestionAction('Próximo lunes', 'start_date', _next_monday(today)),
            ],
        ))

    if 7 <= days_until_start <= 14:
        suggestions.append(Suggestion(
            type='success',
            title='Tiempo de preparación adecuado',
            message=(
                f'{days_until_start} días es un tiempo óptimo para organizar el grupo '
                'y reclutar participantes.'
            ),
            icon='calendar-check',
            risk='low',
        ))

    return suggestions


def check_penalty_settings(data, today):
    penalty = data['penalty']
    contribution = data['contribution']
    # Thresholds are relative to the contribution
    if penalty == 0 or contribution == 0:
        return []

    five_percent = f'{contribution * 0.05:.2f}'
    ten_percent = f'{contribution * 0.10:.2f}'
    suggestions = []

    if penalty < contribution * 0.05:
        suggestions.append(Suggestion(
            type='tip',
            title='Penalidad puede ser muy baja',
            message=(
                f'L. {format_amount(penalty)} puede no ser suficiente incentivo. '
                f'Se recomienda 5-10% de la contribución (L. {five_percent} - L. {ten_percent}).'
            ),
            icon='percentage',
            risk='low',
            actions=[
                SuggestionAction(f'Ajustar a 5% (L. {five_percent})', 'penalty_amount', five_percent),
                SuggestionAction(f'Ajustar a 10% (L. {ten_percent})', 'penalty_amount', ten_percent),
            ],
        ))

    if penalty > contribution * 0.20:
        percent = f'{penalty / contribution * 100:.0f}'
        suggestions.append(Suggestion(
            type='warning',
            title='Penalidad muy alta',
            message=(
                f'L. {format_amount(penalty)} ({percent}%) puede desincentivar participación. '
                'Se recomienda máximo 20%.'
            ),
            icon='hand-paper',
            risk='medium',
            actions=[
                SuggestionAction(f'Reducir a 10% (L. {ten_percent})', 'penalty_amount', ten_percent),
            ],
        ))

    return suggestions


def check_group_type(data, today):
    group_type = data['type']
    contribution = data['contribution']
    if not group_type or contribution == 0:
        return []

    suggestions = []

    if group_type == 'savings' and contribution < 500:
        suggestions.append(Suggestion(
            type='tip',
            title='Tipo de grupo y monto',
            message=(
                'Para un grupo de "Ahorros", considera contribuciones más altas '
                '(mínimo L. 500) para acumular fondos significativos.'
            ),
            icon='piggy-bank',
            risk='low',
        ))

    if group_type == 'emergency' and contribution < 300:
        suggestions.append(Suggestion(
            type='tip',
            title='Fondo de emergencia',
            message=(
                'Para emergencias, se recomienda mínimo L. 300 por persona para cubrir '
                'gastos imprevistos efectivamente.'
            ),
            icon='medkit',
            risk='low',
        ))

    return suggestions


def optimization_tip(data, suggestions):
    """General trust tip once the core fields are filled and nothing is alarming."""
    if not (data['contribution'] > 0 and data['max_participants'] > 0 and data['frequency']):
        return None
    if any(suggestion.type == 'warning' for suggestion in suggestions):
        return None
    return Suggestion(
        type='tip',
        title='Mejora la confianza del grupo',
        message=(
            'Considera agregar una descripción detallada y reglas claras para '
            'atraer participantes comprometidos.'
        ),
        icon='star',
        risk='low',
    )


SUGGESTION_RULES = (
    check_contribution_amount,
    check_participant_count,
    check_frequency,
    check_total_pool,
    check_start_date,
    check_penalty_settings,
    check_group_type,
)


def generate_suggestions(values, today):
    """Evaluate every rule against the form values, in display order."""
    data = read_snapshot(values)
    suggestions = []
    for rule in SUGGESTION_RULES:
        suggestions.extend(rule(data, today))

    tip = optimization_tip(data, suggestions)
    if tip is not None:
        suggestions.append(tip)
    return suggestions


# ============================================================
# ENGINE
# ============================================================

class SuggestionEngine:
    """
    Keeps the suggestion list of one FormSession up to date.

    Field changes schedule a debounced recompute. The list is rebuilt
    from scratch every time; nothing carries over between recomputes.
    """

    def __init__(self, session, scheduler=None, today=date.today,
                 debounce=DEFAULT_DEBOUNCE, highlight=DEFAULT_HIGHLIGHT):
        self.session = session
        self.scheduler = scheduler or ImmediateScheduler()
        self.today = today
        self.highlight = highlight
        self.suggestions = []
        self.expanded = False
        self.highlighted_fields = set()
        self.last_applied = None
        self.recompute_count = 0
        self._debouncer = Debouncer(debounce, self.refresh, self.scheduler)
        self._highlight_handles = {}
        self._mounted = False

    def mount(self):
        if not self._mounted:
            self.session.subscribe(self._on_field_change)
            self._mounted = True
        return self

    def unmount(self):
        if self._mounted:
            self.session.unsubscribe(self._on_field_change)
            self._mounted = False
        self._debouncer.cancel()
        for handle in self._highlight_handles.values():
            handle.cancel()
        self._highlight_handles.clear()

    @property
    def update_pending(self):
        return self._debouncer.pending

    def _on_field_change(self, field, value):
        if field in TRACKED_FIELDS:
            self._debouncer.trigger()

    def refresh(self):
        self.suggestions = generate_suggestions(self.session.snapshot(), self.today())
        self.recompute_count += 1
        if self.suggestions:
            self.expanded = True
        logger.debug(
            "Generated %s suggestions for session %s",
            len(self.suggestions), self.session.session_id
        )
        return self.suggestions

    def toggle_panel(self):
        self.expanded = not self.expanded
        return self.expanded

    def apply(self, field, value):
        """
        Write a suggestion's value into the form.

        Returns False (and only logs) when the field does not exist.
        """
        if field not in ALL_FIELDS:
            logger.error("Field %s not found, suggestion not applied", field)
            return False

        self.session.update_field(field, value)
        self.last_applied = field
        self._highlight(field)
        logger.info("Applied suggestion: %s = %s", field, value)
        return True

    def _highlight(self, field):
        previous = self._highlight_handles.pop(field, None)
        if previous is not None:
            previous.cancel()
        self.highlighted_fields.add(field)
        handle = self.scheduler.call_later(self.highlight, self._clear_highlight, field)
        if field in self.highlighted_fields:
            self._highlight_handles[field] = handle

    def _clear_highlight(self, field):
        self.highlighted_fields.discard(field)
        self._highlight_handles.pop(field, None)

    def render(self):
        return render_suggestions(self.suggestions, expanded=self.expanded)

    def to_dict(self):
        return {
            'count': len(self.suggestions),
            'expanded': self.expanded,
            'items': [suggestion.to_dict() for suggestion in self.suggestions],
            'highlighted': sorted(self.highlighted_fields),
            'applied': self.last_applied,
            'highlight_seconds': self.highlight,
            'html': str(self.render()),
        }
