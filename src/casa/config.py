"""
Deployment settings for the CASA package.

Values come from the project-level `config.yaml` (Earth Engine project,
export folder and asset root, default study year and climate join policy).
Algorithm constants live in `casa.compute.settings` instead.
"""

from pathlib import Path

import yaml  # type: ignore[import-untyped]

# src/casa/config.py -> repository root
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_PATH = PROJECT_ROOT / "config.yaml"


def load_config(path: Path = CONFIG_PATH):
    """Load configuration from config.yaml or return defaults."""
    if path.exists():
        with open(path) as f:
            return yaml.safe_load(f) or {}
    return {}


_config = load_config()
_gee_config = _config.get("gee") or {}
_run_config = _config.get("run") or {}

# Earth Engine
GEE_PROJECT = _gee_config.get("project")
ASSET_ROOT = _gee_config.get("asset_root")
EXPORT_FOLDER = _gee_config.get("export_folder", "casa")

# Pipeline defaults
DEFAULT_YEAR = int(_run_config.get("year", 2022))
DEFAULT_JOIN = _run_config.get("join", "month")
