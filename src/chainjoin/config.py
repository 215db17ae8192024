from __future__ import annotations

import keyword
import os as _os
from dataclasses import dataclass
from typing import Mapping, Optional

ENV_RUNTIME_ALIAS = "CHAINJOIN_RUNTIME_ALIAS"
ENV_VAR_PREFIX = "CHAINJOIN_VAR_PREFIX"
ENV_DEBUG_PY_TRACE = "CHAINJOIN_DEBUG_PY_TRACE"


def _check_identifier(name: str, what: str) -> str:
    if not name.isidentifier() or keyword.iskeyword(name):
        raise ValueError(f"{what} must be a Python identifier, got {name!r}")
    return name


@dataclass(frozen=True)
class ExpansionConfig:
    """Names the generated code uses.

    `runtime_alias` is the name the combinator module is bound to when the
    expansion is evaluated; `var_prefix` prefixes the per-chain barrier
    variables.
    """

    runtime_alias: str = "_cj"
    var_prefix: str = "_cj_"

    def __post_init__(self) -> None:
        _check_identifier(self.runtime_alias, "runtime_alias")
        _check_identifier(self.var_prefix + "0", "var_prefix")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> ExpansionConfig:
        env = _os.environ if environ is None else environ
        defaults = cls()
        return cls(
            runtime_alias=env.get(ENV_RUNTIME_ALIAS) or defaults.runtime_alias,
            var_prefix=env.get(ENV_VAR_PREFIX) or defaults.var_prefix,
        )

    def var(self, index: int) -> str:
        return f"{self.var_prefix}{index}"


def debug_py_trace_enabled() -> bool:
    value = _os.environ.get(ENV_DEBUG_PY_TRACE, "")
    return value.strip().lower() in ("1", "true", "yes", "on")
