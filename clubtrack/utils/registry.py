"""
Option Registry - utils/registry.py

PURPOSE:
--------
This module exposes config/registry.yaml as the SINGLE SOURCE OF TRUTH for
enumerated options:
  1. The technical assessment scale (Poor, Average, Good, Excellent)
  2. Athlete type filter values and their labels
  3. Per test type field definitions (kind, required, bounds, defaults)
  4. The Yo-Yo VO2 reference table

Validation (services/test_schema.py) and presentation (cli.py) both read
from here. If an option is not in the registry, it DOES NOT EXIST.

USAGE PATTERN:
-------------
from clubtrack.utils.registry import get_scale_values, get_field_definitions

get_scale_values()               # ['Poor', 'Average', 'Good', 'Excellent']
get_field_definitions('sprint')  # {'distance_meters': {...}, ...}
"""

import yaml
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from functools import lru_cache

logger = logging.getLogger(__name__)

REGISTRY_PATH = Path(__file__).parent.parent / 'config' / 'registry.yaml'


# ============================================================================
# REGISTRY LOADING
# ============================================================================

@lru_cache(maxsize=1)
def load_registry() -> dict:
    """
    Load the option registry from YAML.

    Cached to avoid repeated file I/O.

    Returns:
        Dict containing full registry

    Raises:
        FileNotFoundError: If registry file doesn't exist
        yaml.YAMLError: If YAML is malformed
    """
    if not REGISTRY_PATH.exists():
        raise FileNotFoundError(
            f"Option registry not found at {REGISTRY_PATH}. "
            f"Cannot validate test records without registry."
        )

    try:
        with open(REGISTRY_PATH, 'r', encoding='utf-8') as f:
            registry = yaml.safe_load(f)

        logger.debug(
            f"Loaded option registry v{registry.get('version', 'unknown')} "
            f"with {len(registry.get('test_types', {}))} test types"
        )

        return registry

    except yaml.YAMLError as e:
        logger.error(f"Failed to parse option registry: {e}")
        raise


def reload_registry():
    """Force reload of the option registry (clears cache)."""
    load_registry.cache_clear()
    logger.info("Option registry cache cleared")


# ============================================================================
# TECHNICAL SCALE
# ============================================================================

def get_scale_options() -> List[Dict[str, Any]]:
    """
    Get the ordinal scale used by technical assessments.

    Returns:
        List of {value, label, score} dicts, lowest score first
    """
    return load_registry().get('scale', [])


def get_scale_values() -> List[str]:
    """Get the scale values in ascending order."""
    return [option['value'] for option in get_scale_options()]


def get_default_scale() -> str:
    return load_registry().get('scale_default', 'Average')


def get_scale_score(value: str) -> Optional[int]:
    """
    Get the numeric score (1-4) of a scale value.

    Args:
        value: Scale value (e.g., 'Good')

    Returns:
        Score, or None if value is not on the scale
    """
    for option in get_scale_options():
        if option['value'] == value:
            return option['score']
    return None


# ============================================================================
# ATHLETE TYPES
# ============================================================================

def get_athlete_types() -> List[Dict[str, str]]:
    """
    Get athlete type filter options.

    Values are uppercase, as the backend expects them.
    """
    return load_registry().get('athlete_types', [])


def get_athlete_type_label(value: str) -> str:
    for option in get_athlete_types():
        if option['value'] == value:
            return option['label']
    return value


def is_athlete_type(value: str) -> bool:
    return any(option['value'] == value for option in get_athlete_types())


# ============================================================================
# TEST TYPES
# ============================================================================

def get_test_type_config(test_type: str) -> Dict[str, Any]:
    """
    Get registry entry for a test type.

    Args:
        test_type: Test type key (sprint, yoyo, endurance, technical)

    Returns:
        Dict with label, record_type and fields

    Raises:
        KeyError: If the test type is not registered
    """
    test_types = load_registry().get('test_types', {})
    if test_type not in test_types:
        raise KeyError(
            f"Unknown test type: {test_type}. "
            f"Valid test types are: {', '.join(sorted(test_types))}"
        )
    return test_types[test_type]


def get_field_definitions(test_type: str) -> Dict[str, Dict[str, Any]]:
    """
    Get field definitions for a test type, in declaration order.

    Example:
        >>> get_field_definitions('sprint')['distance_meters']
        {'kind': 'number', 'required': True, 'gt': 0, 'default': 30}
    """
    return get_test_type_config(test_type).get('fields', {})


def get_field_defaults(test_type: str) -> Dict[str, Any]:
    """Get the blank form for a test type: defaults where defined, '' elsewhere."""
    return {
        name: definition.get('default', '')
        for name, definition in get_field_definitions(test_type).items()
    }


def get_test_type_label(test_type: str) -> str:
    return get_test_type_config(test_type).get('label', test_type)


# ============================================================================
# YO-YO REFERENCE
# ============================================================================

def get_yoyo_vo2_reference(final_level: str) -> Optional[float]:
    """
    Look up the estimated VO2max for a Yo-Yo final level.

    Args:
        final_level: Level normalized to one decimal (e.g., '16.3')

    Returns:
        VO2max in ml/kg/min, or None if the level is not tabulated
    """
    table = load_registry().get('yoyo_vo2_table', {})
    value = table.get(str(final_level))
    return float(value) if value is not None else None


def get_yoyo_shuttle_distance() -> int:
    return int(load_registry().get('yoyo_shuttle_distance_m', 40))


def get_endurance_max_speed() -> float:
    """Highest plausible average speed (km/h) for an endurance test."""
    return float(get_test_type_config('endurance').get('max_speed_kmh', 15))
