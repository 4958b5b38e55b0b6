# Utility modules
from .registry import (
    load_registry,
    reload_registry,
    get_scale_values,
    get_scale_options,
    get_scale_score,
    get_default_scale,
    get_athlete_types,
    get_athlete_type_label,
    get_field_definitions,
    get_field_defaults,
    get_test_type_label,
)
from .validation import (
    FieldValidationError,
    ValidationResult,
    EntitySchema,
)
from .retry import (
    RetryConfig,
    MaxRetriesExceeded,
    call_with_retry,
)
