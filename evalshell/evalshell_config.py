from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml

from evalshell.evalshell_capture import DEFAULT_CHUNK_SIZE

CONFIG_ENV = "EVALSHELL_CONFIG"
INCLUDES_ENV = "EVALSHELL_INCLUDES"
DEFAULT_CONFIG_PATH = Path("~/.config/evalshell/config.yaml")


def resolve_path(path: str, base_dir: Optional[str]) -> str:
    """Resolve an include path: `~` expands to home, relative paths are
    taken from `base_dir` (the config file's directory) or the CWD."""
    if path.startswith("~"):
        return os.path.expanduser(path)
    if os.path.isabs(path):
        return os.path.normpath(path)
    base = base_dir or os.getcwd()
    return os.path.normpath(os.path.join(base, path))


@dataclass
class Configuration:
    """Shell settings.

    Read from YAML; every key is optional:

        includes: [startup.py, ~/lib/helpers.py]
        bind_receiver: true
        report_warnings: true
        error_raise_categories: [DeprecationWarning]
        verbose_errors: false
        output_chunk_size: 4096
        prompt: ">>> "
        continuation_prompt: "... "
        use_return_marker: true
    """
    includes: List[str] = field(default_factory=list)
    bind_receiver: bool = True
    report_warnings: bool = True
    # Warning categories (by class name) that abort the evaluation instead of being reported
    error_raise_categories: List[str] = field(default_factory=list)
    verbose_errors: bool = False
    output_chunk_size: int = DEFAULT_CHUNK_SIZE
    prompt: str = ">>> "
    continuation_prompt: str = "... "
    use_return_marker: bool = True

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]], base_dir: Optional[str] = None) -> 'Configuration':
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(k for k in data if k not in known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        includes = data.get("includes") or []
        if isinstance(includes, str):
            includes = [includes]
        data["includes"] = [resolve_path(str(p), base_dir) for p in includes]
        cats = data.get("error_raise_categories") or []
        data["error_raise_categories"] = [cats] if isinstance(cats, str) else list(cats)
        if "output_chunk_size" in data:
            size = int(data["output_chunk_size"])
            if size < 1:
                raise ValueError("output_chunk_size must be positive")
            data["output_chunk_size"] = size
        return cls(**data)

    @classmethod
    def from_file(cls, path) -> 'Configuration':
        p = Path(path).expanduser()
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is not None and not isinstance(data, dict):
            raise ValueError(f"{p}: configuration must be a mapping, got {type(data).__name__}")
        return cls.from_dict(data, base_dir=str(p.parent.resolve()))

    @classmethod
    def load(cls, environ: Optional[Mapping[str, str]] = None) -> 'Configuration':
        """$EVALSHELL_CONFIG, then the default path, then built-in defaults.

        $EVALSHELL_INCLUDES (os.pathsep separated) adds include files.
        """
        env = os.environ if environ is None else environ
        explicit = env.get(CONFIG_ENV)
        if explicit:
            config = cls.from_file(explicit)
        elif DEFAULT_CONFIG_PATH.expanduser().is_file():
            config = cls.from_file(DEFAULT_CONFIG_PATH)
        else:
            config = cls()
        extra = env.get(INCLUDES_ENV)
        if extra:
            config.includes.extend(resolve_path(p, None) for p in extra.split(os.pathsep) if p)
        return config
