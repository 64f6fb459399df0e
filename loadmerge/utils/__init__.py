"""Small helpers shared across loadmerge.

Modules here do not depend on project internals.
"""

from loadmerge.utils.output_paths import ensure_parent_dir, staging_path_for
from loadmerge.utils.yaml_utils import normalize_yaml_dict_keys

__all__ = [
    "ensure_parent_dir",
    "staging_path_for",
    "normalize_yaml_dict_keys",
]
