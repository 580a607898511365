"""
Search space definitions for NestedTune.

This module declares tunable parameters (continuous, integer and categorical),
validates configurations against them, samples random configurations and
enumerates discretized grids.
"""

import itertools
import math
import numbers
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from nestedtune.core.exceptions import InvalidSearchSpace, OutOfRangeError

# Type aliases
Configuration = Dict[str, Any]
Resolution = Union[int, Dict[str, int]]
ParamRange = Union[List[Any], Tuple[Any, ...], Dict[str, Any]]

PARAM_TYPES = ("float", "int", "categorical")


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


@dataclass(frozen=True)
class Parameter:
    """
    One tunable hyperparameter.

    Numeric parameters carry inclusive bounds and an optional log scale.
    Categorical parameters carry an ordered tuple of levels.
    """

    name: str
    param_type: str
    lower: Optional[float] = None
    upper: Optional[float] = None
    levels: Optional[Tuple[Any, ...]] = None
    log: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise InvalidSearchSpace(f"Parameter name must be a non-empty string, got {self.name!r}")
        if self.param_type not in PARAM_TYPES:
            raise InvalidSearchSpace(
                f"Unsupported parameter type for {self.name}: {self.param_type!r}. "
                f"Supported types: {', '.join(PARAM_TYPES)}"
            )

        if self.param_type == "categorical":
            if not self.levels:
                raise InvalidSearchSpace(f"Categorical parameter {self.name} needs at least one level")
            if len(set(map(repr, self.levels))) != len(self.levels):
                raise InvalidSearchSpace(f"Categorical parameter {self.name} has duplicate levels")
            return

        if not (_is_number(self.lower) and _is_number(self.upper)):
            raise InvalidSearchSpace(f"Numeric parameter {self.name} needs numeric lower and upper bounds")
        if math.isnan(self.lower) or math.isnan(self.upper):
            raise InvalidSearchSpace(f"Bounds of {self.name} must not be NaN")
        if self.lower > self.upper:
            raise InvalidSearchSpace(
                f"Empty range for {self.name}: lower={self.lower} > upper={self.upper}"
            )
        if self.log and self.lower <= 0:
            raise InvalidSearchSpace(f"Log-scaled parameter {self.name} needs a positive lower bound")
        if self.param_type == "int" and math.ceil(self.lower) > math.floor(self.upper):
            raise InvalidSearchSpace(f"Integer parameter {self.name} has no integer in its range")

    @classmethod
    def continuous(cls, name: str, lower: float, upper: float, log: bool = False) -> "Parameter":
        return cls(name, "float", lower=lower, upper=upper, log=log)

    @classmethod
    def integer(cls, name: str, lower: int, upper: int, log: bool = False) -> "Parameter":
        return cls(name, "int", lower=lower, upper=upper, log=log)

    @classmethod
    def categorical(cls, name: str, levels: Sequence[Any]) -> "Parameter":
        return cls(name, "categorical", levels=tuple(levels))

    @property
    def is_numeric(self) -> bool:
        return self.param_type != "categorical"

    def contains(self, value: Any) -> bool:
        """Check whether a value lies within this parameter's range."""
        if self.param_type == "categorical":
            return value in self.levels
        if not _is_number(value) or math.isnan(value):
            return False
        if self.param_type == "int" and float(value) != math.floor(value):
            return False
        return self.lower <= value <= self.upper

    def sample(self, rng: np.random.Generator) -> Any:
        """Draw one value uniformly (log-uniformly for log-scaled parameters)."""
        if self.param_type == "categorical":
            return self.levels[int(rng.integers(len(self.levels)))]

        if self.param_type == "int":
            lo, hi = int(math.ceil(self.lower)), int(math.floor(self.upper))
            if self.log:
                x = math.exp(rng.uniform(math.log(lo), math.log(hi)))
                return int(min(hi, max(lo, round(x))))
            return int(rng.integers(lo, hi + 1))

        if self.log:
            x = math.exp(rng.uniform(math.log(self.lower), math.log(self.upper)))
        else:
            x = rng.uniform(self.lower, self.upper)
        # exp/log round trips can step a hair outside the bounds
        return float(min(self.upper, max(self.lower, x)))

    def grid_values(self, resolution: int) -> List[Any]:
        """
        Discretize this parameter.

        Args:
            resolution: Number of points for numeric parameters. Ignored for
                categorical parameters, which always yield all their levels.

        Returns:
            Equally spaced values including both bounds (log spaced for log
            parameters), always ``resolution`` of them for continuous
            parameters. Integer values are rounded and deduplicated.
        """
        if self.param_type == "categorical":
            return list(self.levels)
        if not isinstance(resolution, numbers.Integral) or resolution < 1:
            raise ValueError(f"Resolution for {self.name} must be a positive integer, got {resolution!r}")

        if self.log:
            points = np.geomspace(self.lower, self.upper, int(resolution))
        else:
            points = np.linspace(self.lower, self.upper, int(resolution))

        if self.param_type == "float":
            values = [float(min(self.upper, max(self.lower, p))) for p in points]
            if resolution > 1:
                values[0], values[-1] = float(self.lower), float(self.upper)
            return values

        lo, hi = int(math.ceil(self.lower)), int(math.floor(self.upper))
        values = []
        for p in points:
            v = int(min(hi, max(lo, round(p))))
            if v not in values:
                values.append(v)
        return values

    def perturb(
        self,
        value: Any,
        rng: np.random.Generator,
        step_size: float = 0.1,
        switch_prob: float = 0.3
    ) -> Any:
        """
        Return a random neighbour of a value.

        Numeric values move by a gaussian step scaled to the range width (in
        log space for log parameters) and are clipped to the bounds.
        Categorical values switch to another level with probability
        ``switch_prob``.
        """
        if self.param_type == "categorical":
            if len(self.levels) > 1 and rng.uniform() < switch_prob:
                others = [level for level in self.levels if level != value]
                return others[int(rng.integers(len(others)))]
            return value

        if self.log:
            lo, hi, x = math.log(self.lower), math.log(self.upper), math.log(value)
        else:
            lo, hi, x = float(self.lower), float(self.upper), float(value)
        x = min(hi, max(lo, x + rng.normal(0.0, step_size * (hi - lo))))
        if self.log:
            x = math.exp(x)

        if self.param_type == "int":
            return int(min(math.floor(self.upper), max(math.ceil(self.lower), round(x))))
        return float(min(self.upper, max(self.lower, x)))

    def describe(self) -> Dict[str, Any]:
        if self.param_type == "categorical":
            return {"name": self.name, "type": self.param_type, "levels": list(self.levels)}
        return {
            "name": self.name,
            "type": self.param_type,
            "lower": self.lower,
            "upper": self.upper,
            "log": self.log
        }


class SearchSpace:
    """
    Ordered set of uniquely named parameters.

    The order of declaration is kept; it is the column order of archives and
    the nesting order of grids.
    """

    def __init__(self, params: Sequence[Parameter]) -> None:
        params = list(params)
        if not params:
            raise InvalidSearchSpace("Search space needs at least one parameter")
        names = [p.name for p in params]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise InvalidSearchSpace(f"Duplicate parameter names: {duplicates}")
        self._params: Dict[str, Parameter] = {p.name: p for p in params}

    @classmethod
    def from_dict(cls, param_grid: Dict[str, ParamRange]) -> "SearchSpace":
        """
        Build a search space from a compact dictionary.

        Supported formats per parameter:
            - list: categorical levels
            - (low, high, scale) tuple where scale is "linear", "log" or "int"
            - dict with "min_value", "max_value" and optional "param_type"
              ("float"/"int") and "scale" ("linear"/"log")

        Args:
            param_grid: Mapping of parameter name to its range definition

        Returns:
            SearchSpace instance
        """
        params = []
        for name, param_range in param_grid.items():
            if isinstance(param_range, Parameter):
                params.append(param_range)
            elif isinstance(param_range, list):
                params.append(Parameter.categorical(name, param_range))
            elif isinstance(param_range, tuple) and len(param_range) == 3:
                low, high, scale = param_range
                if scale == "linear":
                    params.append(Parameter.continuous(name, low, high))
                elif scale == "log":
                    params.append(Parameter.continuous(name, low, high, log=True))
                elif scale == "int":
                    params.append(Parameter.integer(name, low, high))
                else:
                    raise InvalidSearchSpace(f"Unsupported scale for {name}: {scale!r}")
            elif isinstance(param_range, dict) and "min_value" in param_range and "max_value" in param_range:
                log = param_range.get("scale", "linear") == "log"
                if param_range.get("param_type", "float") == "int":
                    params.append(Parameter.integer(name, param_range["min_value"], param_range["max_value"], log=log))
                else:
                    params.append(Parameter.continuous(name, param_range["min_value"], param_range["max_value"], log=log))
            else:
                raise InvalidSearchSpace(f"Unsupported param_range format for {name}: {param_range!r}")
        return cls(params)

    @property
    def names(self) -> List[str]:
        return list(self._params)

    @property
    def params(self) -> List[Parameter]:
        return list(self._params.values())

    def __len__(self) -> int:
        return len(self._params)

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self._params.values())

    def __contains__(self, name: object) -> bool:
        return name in self._params

    def __getitem__(self, name: str) -> Parameter:
        return self._params[name]

    def __repr__(self) -> str:
        return f"SearchSpace({', '.join(self.names)})"

    def assert_valid(self, config: Configuration) -> Configuration:
        """
        Validate a configuration.

        Raises:
            OutOfRangeError: If a parameter is missing, unknown or out of range

        Returns:
            The configuration, unchanged
        """
        unknown = [k for k in config if k not in self._params]
        if unknown:
            raise OutOfRangeError(f"Unknown parameters in configuration: {unknown}")
        missing = [k for k in self._params if k not in config]
        if missing:
            raise OutOfRangeError(f"Configuration is missing parameters: {missing}")
        for name, param in self._params.items():
            if not param.contains(config[name]):
                raise OutOfRangeError(
                    f"Value {config[name]!r} for {name} violates {param.describe()}"
                )
        return config

    def is_valid(self, config: Configuration) -> bool:
        try:
            self.assert_valid(config)
        except OutOfRangeError:
            return False
        return True

    def sample(self, rng: np.random.Generator) -> Configuration:
        """Draw one configuration uniformly at random."""
        return {name: param.sample(rng) for name, param in self._params.items()}

    def _resolve_resolution(self, resolution: Resolution) -> Dict[str, int]:
        if isinstance(resolution, dict):
            missing = [p.name for p in self.params if p.is_numeric and p.name not in resolution]
            if missing:
                raise ValueError(f"No grid resolution given for: {missing}")
            return {name: resolution.get(name, 1) for name in self._params}
        return {name: resolution for name in self._params}

    def grid(self, resolution: Resolution) -> List[Configuration]:
        """
        Enumerate the discretized grid.

        Args:
            resolution: Points per numeric dimension, as an int for all
                parameters or a dict per parameter name

        Returns:
            List of configurations forming the cartesian product of the
            per-parameter grids, in parameter order
        """
        per_param = self._resolve_resolution(resolution)
        axes = [param.grid_values(per_param[name]) for name, param in self._params.items()]
        return [dict(zip(self._params, values)) for values in itertools.product(*axes)]

    def grid_size(self, resolution: Resolution) -> int:
        per_param = self._resolve_resolution(resolution)
        return int(np.prod([len(p.grid_values(per_param[n])) for n, p in self._params.items()]))

    def subspace(self, names: Sequence[str]) -> "SearchSpace":
        return SearchSpace([self._params[n] for n in names])

    def to_dict(self) -> List[Dict[str, Any]]:
        return [param.describe() for param in self]


def match_config(config: Configuration, subspace: Dict[str, Union[Any, Callable[[Any], bool]]]) -> bool:
    """
    Check whether a configuration falls into a subspace.

    Args:
        config: Configuration to check
        subspace: Mapping of parameter name to an allowed value, a list/tuple/set
            of allowed values, or a predicate

    Returns:
        True if every constraint is satisfied
    """
    for name, condition in subspace.items():
        if name not in config:
            return False
        value = config[name]
        if callable(condition):
            if not condition(value):
                return False
        elif isinstance(condition, (list, tuple, set, frozenset)):
            if value not in condition:
                return False
        elif value != condition:
            return False
    return True
