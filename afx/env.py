"""Environment variables and secrets cached between runs.

Each variable resolves with precedence: process environment, then the
cached value, then its default. Resolved values are exported into
``os.environ`` so child processes (git, build steps) see them.
"""

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, Mapping

from prompt_toolkit import prompt as pt_prompt
from prompt_toolkit.validation import Validator

from .errors import PromptError

_logging = logging.getLogger(__name__)


@dataclass
class Input:
    when: bool = False
    message: str = ""
    help: str = ""


@dataclass
class Variable:
    value: str = ""
    default: str = ""
    input: Input = field(default_factory=Input)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["input"] = {k: v for k, v in data["input"].items() if v}
        return {k: v for k, v in data.items() if v}

    @classmethod
    def from_dict(cls, data: dict) -> "Variable":
        raw_input = data.get("input") or {}
        return cls(
            value=data.get("value") or "",
            default=data.get("default") or "",
            input=Input(
                when=bool(raw_input.get("when", False)),
                message=raw_input.get("message") or "",
                help=raw_input.get("help") or "",
            ),
        )


_required = Validator.from_callable(
    lambda text: len(text) > 0,
    error_message="Value is required",
    move_cursor_to_end=True,
)


def ask_password(message: str, help: str = "") -> str:
    """Prompt for a hidden, non-empty value."""
    try:
        return pt_prompt(
            f"{message} ",
            is_password=True,
            validator=_required,
            bottom_toolbar=help or None,
        )
    except (KeyboardInterrupt, EOFError) as e:
        raise PromptError("prompt cancelled") from e


class Env:
    """Keyed store of variables backed by a JSON cache file."""

    def __init__(
        self,
        path: str | os.PathLike,
        asker: Callable[[str, str], str] = ask_password,
    ):
        self.path = Path(path)
        self.env: dict[str, Variable] = {}
        self.asker = asker
        self._lock = threading.Lock()
        self._read()

    def _read(self) -> None:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        except OSError as e:
            _logging.warning(f"{self.path}: cannot read env cache: {e}")
            return
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            _logging.warning(f"{self.path}: ignored malformed env cache: {e}")
            return
        for name, raw in (data.get("env") or {}).items():
            if isinstance(raw, dict):
                self.env[name] = Variable.from_dict(raw)

    def save(self) -> None:
        """Write the cache, leaving out variables with no value and no default."""
        payload = {
            "path": str(self.path),
            "env": {
                name: v.to_dict()
                for name, v in sorted(self.env.items())
                if v.value or v.default
            },
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
            os.chmod(self.path, 0o600)
        except OSError as e:
            _logging.error(f"{self.path}: failed to save env cache: {e}")

    def add(self, name: str, variable: Variable | None = None) -> None:
        variable = variable or Variable()
        with self._lock:
            cached = self.env.get(name)
            if cached is not None and cached.value:
                variable.value = cached.value
            if os.environ.get(name):
                variable.value = os.environ[name]
            if not variable.value:
                variable.value = variable.default
            if variable.value:
                os.environ[name] = variable.value
            self.env[name] = variable
        self.save()

    def add_all(self, variables: Mapping[str, Variable]) -> None:
        for name, variable in variables.items():
            self.add(name, variable)

    def get(self, name: str) -> str:
        variable = self.env.get(name)
        return variable.value if variable else ""

    def _ask(self, name: str) -> None:
        variable = self.env[name]
        value = self.asker(variable.input.message or f"{name}:", variable.input.help)
        variable.value = value
        os.environ[name] = value

    def ask(self, *keys: str) -> None:
        """Prompt for each key that is still empty and has ``input.when`` set."""
        updated = False
        for key in keys:
            variable = self.env.get(key)
            if variable is None or variable.value or not variable.input.when:
                continue
            self._ask(key)
            updated = True
        if updated:
            self.save()

    def ask_when(self, conditions: Mapping[str, bool]) -> None:
        """Prompt for each key whose condition is true and value is empty."""
        updated = False
        for key, when in conditions.items():
            variable = self.env.get(key)
            if variable is None or variable.value or not when:
                continue
            self._ask(key)
            updated = True
        if updated:
            self.save()

    def refresh(self) -> None:
        """Delete the cache file so secrets are asked again next time."""
        try:
            self.path.unlink()
            _logging.debug(f"{self.path}: env cache deleted")
        except FileNotFoundError:
            pass
        except OSError as e:
            _logging.error(f"{self.path}: failed to delete env cache: {e}")


__all__ = ["Env", "Input", "Variable", "ask_password"]
