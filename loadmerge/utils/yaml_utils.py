"""Utilities for handling YAML parsing quirks."""

from typing import Any, Dict, TypeVar

V = TypeVar("V")


def normalize_yaml_dict_keys(data: Dict[Any, V]) -> Dict[str, V]:
    """Coerce dictionary keys produced by YAML parsing to strings.

    YAML 1.1 turns keys such as ``yes``/``no``/``on``/``off`` into booleans
    and bare numbers into ints. Config keys are always compared as strings,
    so they are normalized here; booleans become ``"True"``/``"False"``.

    Args:
        data: Mapping straight from ``yaml.safe_load``.

    Returns:
        New dictionary with string keys and the original values.

    Examples:
        >>> normalize_yaml_dict_keys({True: 1, 8: "x", "workers": 2})
        {'True': 1, '8': 'x', 'workers': 2}
    """
    return {str(key): value for key, value in data.items()}
