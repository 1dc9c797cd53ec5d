"""
Services Package
================

Business logic layer for tanda group creation.

The wizard controller and the suggestion engine share one FormSession.
Routes build them around the session, they do not touch models directly.
"""

from tanda.services.form_session import (
    FormSession,
    WizardStatus,
    FormSessionError,
    UnknownFieldError,
    TOTAL_STEPS
)

from tanda.services.validators import (
    ValidationResult,
    validate_field,
    validate_fields
)

from tanda.services.wizard_service import (
    WizardController,
    AdvanceOutcome,
    WizardError,
    build_confirmation_summary
)

from tanda.services.suggestion_service import (
    SuggestionEngine,
    Suggestion,
    SuggestionAction,
    generate_suggestions,
    SuggestionError
)

from tanda.services.group_service import (
    create_group_from_form,
    list_groups_for_user,
    GroupCreationError,
    InvalidGroupDataError
)

from tanda.services.scheduling import (
    Debouncer,
    ImmediateScheduler
)
