"""Single-invocation commands (script runner, pub package manager)."""

from .pub import PubError, raise_on_pub_failure, run_pub
from .run_script import ScriptError, raise_on_failure, run_script

__all__ = ["PubError", "ScriptError", "raise_on_failure", "raise_on_pub_failure", "run_pub", "run_script"]
