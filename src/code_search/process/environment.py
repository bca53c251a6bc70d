"""Allowlist-based environment construction for backend processes."""

import os
from typing import Dict, Mapping, Optional, Sequence

from ..config import CORE_ALLOWED_ENV_VARS


def build_child_env(
    overrides: Optional[Mapping[str, Optional[str]]] = None,
    allowed_env_vars: Optional[Sequence[str]] = None,
    base_env: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Build the environment for a child process.

    Only variables named in the allowlist are copied from ``base_env``
    (``os.environ`` by default). Overrides are applied afterwards and are
    silently dropped unless their name is also allowlisted; an override of
    ``None`` removes the variable.

    Args:
        overrides: Caller-supplied values
        allowed_env_vars: Variable names that may reach the child
        base_env: Source environment, mainly for tests

    Returns:
        A fresh dict suitable for ``create_subprocess_exec(env=...)``
    """
    allowlist = list(allowed_env_vars if allowed_env_vars is not None else CORE_ALLOWED_ENV_VARS)
    allowed = set(allowlist)
    source = os.environ if base_env is None else base_env

    env: Dict[str, str] = {}
    for name in allowlist:
        value = source.get(name)
        if value is not None:
            env[name] = value

    for name, value in (overrides or {}).items():
        if name not in allowed:
            continue
        if value is None:
            env.pop(name, None)
        else:
            env[name] = value

    return env
