"""afx: declarative installer for shell plugins and command-line tools."""

from .config import load_packages
from .env import Env, Input, Variable
from .errors import (
    AfxError,
    AssetNotFound,
    BuildError,
    Cancelled,
    ConfigError,
    FetchError,
    LinkError,
    MultiError,
    PromptError,
    StateError,
    TemplateError,
)
from .executor import Executor
from .logging_config import setup_logging
from .state import Resource, State

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "AfxError",
    "AssetNotFound",
    "BuildError",
    "Cancelled",
    "ConfigError",
    "Env",
    "Executor",
    "FetchError",
    "Input",
    "LinkError",
    "MultiError",
    "PromptError",
    "Resource",
    "State",
    "StateError",
    "TemplateError",
    "Variable",
    "load_packages",
    "setup_logging",
]
