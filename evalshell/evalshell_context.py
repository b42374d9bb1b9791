"""
The scope store: variables that outlive a single evaluation.
"""

from typing import Any, Dict, Optional

RECEIVER_NAME = 'self'


class Context:
    """Holds the shell's persistent bindings and its special variables.

    User bindings are an ordered name -> value dict. The special variables
    are owned by the host and can be read, but never rebound, by evaluated
    code:

      _       the last return value
      _e      the last reported exception
      __out   the stdout captured from the last successful evaluation
      self    the bound receiver, if any

    Without a bound receiver `self` is an ordinary name.
    """

    SPECIAL_NAMES = ('_', '_e', '__out', '__builtins__')

    def __init__(self):
        self.bindings: Dict[str, Any] = {}
        self.return_value: Any = None
        self.last_exception: Optional[BaseException] = None
        self.last_stdout: Optional[str] = None
        self.bound_object: Any = None

    def __getitem__(self, name: str) -> Any:
        match name:
            case '_':
                return self.return_value
            case '_e':
                if self.last_exception is None:
                    raise KeyError("'_e'")
                return self.last_exception
            case '__out':
                if self.last_stdout is None:
                    raise KeyError("'__out'")
                return self.last_stdout
            case 'self' if self.bound_object is not None:
                return self.bound_object
        if name not in self.bindings:
            raise KeyError(f"'{name}'")
        return self.bindings[name]

    def __setitem__(self, name: str, value: Any):
        if not isinstance(name, str):
            raise TypeError(f"Variable name must be a str, not {type(name)}")
        if self.is_reserved(name):
            raise KeyError(f"'{name}' is reserved and cannot be rebound.")
        self.bindings[name] = value

    def __contains__(self, name: str) -> bool:
        try:
            self[name]
        except KeyError:
            return False
        return True

    def get_all(self, include_bound_object: bool = True) -> Dict[str, Any]:
        """A fresh dict of everything in scope, specials last."""
        out = dict(self.bindings)
        out['_'] = self.return_value
        if self.last_exception is not None:
            out['_e'] = self.last_exception
        if self.last_stdout is not None:
            out['__out'] = self.last_stdout
        if include_bound_object and self.bound_object is not None:
            out[RECEIVER_NAME] = self.bound_object
        return out

    def set_all(self, variables: Dict[str, Any]):
        """Replace the user bindings, ignoring any special names."""
        self.bindings = {
            name: value for name, value in variables.items()
            if not self.is_reserved(name)
        }

    def is_reserved(self, name: str) -> bool:
        if name == RECEIVER_NAME:
            return self.bound_object is not None
        return name in self.SPECIAL_NAMES

    def names(self) -> list[str]:
        return list(self.get_all().keys())

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        return f"<Context bindings=[{keys}]>"
