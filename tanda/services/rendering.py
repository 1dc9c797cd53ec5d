"""
RENDERING
=========

HTML fragments for the group creation wizard.

Fragments are rendered from Jinja templates with autoescaping on, so any
value a user typed is escaped on the way into the view. The result is
returned as Markup so a page template can embed it without escaping twice.
"""

from jinja2 import Environment, PackageLoader, select_autoescape
from markupsafe import Markup

from tanda.models import GroupType, PaymentFrequency


_env = Environment(
    loader=PackageLoader('tanda', 'templates'),
    autoescape=select_autoescape(['html']),
    trim_blocks=True,
    lstrip_blocks=True,
)

RISK_LABELS = {
    'low': 'Bajo',
    'medium': 'Medio',
    'high': 'Alto',
}

GENERIC_ERROR_TITLE = 'Error al Crear Grupo'
GENERIC_ERROR_MESSAGE = (
    'Ocurrio un error al crear el grupo. '
    'Por favor, revisa los datos e intenta nuevamente.'
)


def format_amount(value):
    """Format a money amount with thousands separators: 20000 -> '20,000'."""
    if value is None:
        return '0'
    number = float(value)
    if number.is_integer():
        return f'{int(number):,}'
    return f'{number:,.2f}'


def type_label(value):
    """Display label for a group type; unknown values are shown as typed."""
    member = GroupType.from_value(value)
    if member is None:
        return '' if value is None else str(value)
    return member.label


def frequency_label(value):
    """Display label for a payment frequency; unknown values are shown as typed."""
    member = PaymentFrequency.from_value(value)
    if member is None:
        return '' if value is None else str(value)
    return member.label


def render_fragment(template_name, **context):
    template = _env.get_template(template_name)
    return Markup(template.render(**context))


def render_confirmation(summary):
    return render_fragment('wizard/_confirmation.html', summary=summary)


def render_success(group_name, group_id):
    return render_fragment('wizard/_success.html', group_name=group_name, group_id=group_id)


def render_error():
    return render_fragment(
        'wizard/_error.html',
        title=GENERIC_ERROR_TITLE,
        message=GENERIC_ERROR_MESSAGE,
    )


def render_suggestions(suggestions, expanded=False):
    return render_fragment(
        'wizard/_suggestions.html',
        suggestions=suggestions,
        expanded=expanded,
        risk_labels=RISK_LABELS,
    )
