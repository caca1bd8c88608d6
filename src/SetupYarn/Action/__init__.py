"""CI glue: inputs, logging, Corepack/Yarn commands and the end-to-end run."""

from .errors import ActionError, CommandError
from .inputs import ActionInputs, get_inputs
from .main import run

__all__ = ["ActionError", "ActionInputs", "CommandError", "get_inputs", "run"]
