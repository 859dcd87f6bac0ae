"""Top-level package for the assignment solver."""

from .config import ConfigManager, SolverSettings, get_user_config_dir  # noqa: F401
from .logging import setup_logging  # noqa: F401
