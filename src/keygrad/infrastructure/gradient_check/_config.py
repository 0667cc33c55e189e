"""
Configuration of gradient checks.

Defaults can be overridden per process with environment variables, in the
same opt-in style as the rest of the code base:

- ``KEYGRAD_CHECK_ATOL``      absolute tolerance
- ``KEYGRAD_CHECK_RTOL``      relative tolerance
- ``KEYGRAD_CHECK_EPS``       default perturbation of numerical gradients
- ``KEYGRAD_LEAK_DETECTION``  ``0``/``false`` disables the leak assertion

Explicit arguments to the check functions always win over the config.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

_FALSE_VALUES = ("0", "", "false", "False", "FALSE")


def _float_from_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class GradientCheckConfig:
    """
    Default tolerances and switches of gradient checks.

    Attributes
    ----------
    atol : float
        Absolute tolerance. Must be non-negative.
    rtol : float
        Relative tolerance. Must be non-negative.
    eps : float
        Perturbation used when no eps is given. Must be positive.
    detect_leaks : bool
        Whether entry points assert that no array body leaked.
    """

    atol: float = 1e-5
    rtol: float = 1e-4
    eps: float = 1e-3
    detect_leaks: bool = True

    def __post_init__(self) -> None:
        if self.atol < 0:
            raise ValueError(f"atol must be non-negative, got {self.atol}")
        if self.rtol < 0:
            raise ValueError(f"rtol must be non-negative, got {self.rtol}")
        if self.eps <= 0:
            raise ValueError(f"eps must be positive, got {self.eps}")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "GradientCheckConfig":
        """
        Build a config from environment variables.

        Parameters
        ----------
        env : Optional[Mapping[str, str]], optional
            Mapping to read from. Defaults to `os.environ`.

        Raises
        ------
        ValueError
            If a variable holds an unparsable or out-of-range value.
        """
        env = os.environ if env is None else env
        default = cls()
        return cls(
            atol=_float_from_env(env, "KEYGRAD_CHECK_ATOL", default.atol),
            rtol=_float_from_env(env, "KEYGRAD_CHECK_RTOL", default.rtol),
            eps=_float_from_env(env, "KEYGRAD_CHECK_EPS", default.eps),
            detect_leaks=env.get("KEYGRAD_LEAK_DETECTION", "1") not in _FALSE_VALUES,
        )
