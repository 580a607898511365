"""
Tuners for NestedTune.

A tuner proposes batches of configurations to a :class:`TuningInstance`
until the instance's budget is exhausted or the tuner runs out of
candidates. Available strategies:

- grid search over a discretized search space, in seeded random order
- random search with i.i.d. uniform samples
- simulated annealing around the current state
- design points, a fixed list of configurations
- TPE, Optuna's tree-structured Parzen estimator driven by ask/tell
"""

import math
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import optuna
import pandas as pd
from optuna.trial import TrialState
from sklearn.base import BaseEstimator
from tqdm import tqdm

from nestedtune.core.archive import EvaluationRecord
from nestedtune.core.config import CONFIG
from nestedtune.core.measures import Measure
from nestedtune.core.resampling import Resampling
from nestedtune.core.search_space import Parameter, Resolution, SearchSpace
from nestedtune.core.terminators import Terminator
from nestedtune.core.tuning_instance import TuningInstance, TuningResult

# Type aliases
ArrayLike = Union[np.ndarray, pd.DataFrame, pd.Series]
HyperParams = Dict[str, Any]

# Set up Optuna's logging level
optuna.logging.set_verbosity(optuna.logging.ERROR)


class Tuner:
    """
    Base class for tuning strategies.

    Subclasses implement :meth:`_propose` and may override :meth:`_setup`
    (called once per run) and :meth:`_observe` (called after every batch).

    Args:
        batch_size: Number of configurations proposed per round
        random_state: Seed for the tuner's random number generator
    """

    name = "tuner"

    def __init__(
        self,
        batch_size: int = CONFIG["defaults"]["batch_size"],
        random_state: Optional[int] = None
    ) -> None:
        if not isinstance(batch_size, (int, np.integer)) or batch_size < 1:
            raise ValueError(f"batch_size must be a positive integer, got {batch_size!r}")
        self.batch_size = int(batch_size)
        self.random_state = random_state

    def optimize(self, instance: TuningInstance) -> TuningResult:
        """
        Run the tuning loop on an instance.

        Each round proposes one batch, evaluates it, records it and re-checks
        the budget. The loop ends when the budget is exhausted or no candidate
        is left.

        Args:
            instance: The tuning instance to optimize

        Returns:
            TuningResult with the best configuration, its score and the archive
        """
        if instance.archive.frozen:
            raise RuntimeError("This tuning instance has already been optimized")

        rng = np.random.default_rng(self.random_state)
        self._setup(instance, rng)
        instance.start()

        if instance.verbose:
            print(f"Running {self.name} with batch size {self.batch_size} ({instance.terminator!r})")

        progress = tqdm(desc=f"Tuning ({self.name})", unit="eval", disable=not instance.verbose)
        try:
            while not instance.is_terminated:
                configs = self._propose(instance, rng)
                if not configs:
                    break
                records = instance.eval_batch(configs)
                self._observe(instance, records, rng)
                progress.update(len(records))
                for record in records:
                    if record.failed:
                        progress.write(f"Evaluation {record.index} failed: {'; '.join(record.errors)}")
        finally:
            progress.close()

        result = instance.finish()

        if instance.verbose:
            print(f"Evaluated {result.n_evals} configurations")
            if result.best_params is None:
                print("No configuration could be evaluated")
            else:
                print(f"Best score ({instance.measure.name}): {result.best_score:.4f}")
                print("Best hyperparameters:")
                for param, value in result.best_params.items():
                    print(f"  {param}: {value}")
        return result

    def _setup(self, instance: TuningInstance, rng: np.random.Generator) -> None:
        pass

    def _propose(self, instance: TuningInstance, rng: np.random.Generator) -> List[HyperParams]:
        raise NotImplementedError

    def _observe(
        self,
        instance: TuningInstance,
        records: Sequence[EvaluationRecord],
        rng: np.random.Generator
    ) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(batch_size={self.batch_size}, random_state={self.random_state})"


class GridSearchTuner(Tuner):
    """
    Grid search.

    The full grid is computed once when the run starts and then evaluated in
    a seeded random order, so a run cut short by its budget still covers the
    space evenly. The run stops when the grid is exhausted.

    Args:
        resolution: Points per numeric parameter (int, or dict per name)
        batch_size: Number of grid points evaluated per round
        random_state: Seed for the evaluation order
    """

    name = "grid_search"

    def __init__(
        self,
        resolution: Resolution = CONFIG["defaults"]["resolution"],
        batch_size: int = CONFIG["defaults"]["batch_size"],
        random_state: Optional[int] = None
    ) -> None:
        super().__init__(batch_size=batch_size, random_state=random_state)
        self.resolution = resolution

    def _setup(self, instance, rng):
        grid = instance.search_space.grid(self.resolution)
        self._pending = [grid[i] for i in rng.permutation(len(grid))]

    def _propose(self, instance, rng):
        batch = self._pending[:self.batch_size]
        self._pending = self._pending[self.batch_size:]
        return batch


class RandomSearchTuner(Tuner):
    """Random search: every batch holds i.i.d. uniform samples of the space."""

    name = "random_search"

    def _propose(self, instance, rng):
        return [instance.search_space.sample(rng) for _ in range(self.batch_size)]


class SimulatedAnnealingTuner(Tuner):
    """
    Simulated annealing.

    The first batch is sampled at random. Afterwards each batch holds random
    perturbations of the current state. A better candidate always becomes the
    new state; a worse one is accepted with probability ``exp(-delta / T)``
    where ``delta`` is how much worse it scores. The temperature ``T`` starts
    at ``initial_temperature`` and is multiplied by ``cooling_rate`` after
    every evaluation.

    Args:
        initial_temperature: Starting temperature
        cooling_rate: Geometric cooling factor in (0, 1)
        step_size: Perturbation scale as a fraction of each parameter's range
        batch_size: Number of neighbours evaluated per round
        random_state: Seed for sampling, perturbation and acceptance
    """

    name = "simulated_annealing"

    def __init__(
        self,
        initial_temperature: float = CONFIG["annealing"]["initial_temperature"],
        cooling_rate: float = CONFIG["annealing"]["cooling_rate"],
        step_size: float = CONFIG["annealing"]["step_size"],
        batch_size: int = CONFIG["defaults"]["batch_size"],
        random_state: Optional[int] = None
    ) -> None:
        super().__init__(batch_size=batch_size, random_state=random_state)
        if initial_temperature <= 0:
            raise ValueError(f"initial_temperature must be positive, got {initial_temperature}")
        if not 0 < cooling_rate < 1:
            raise ValueError(f"cooling_rate must be in (0, 1), got {cooling_rate}")
        if step_size <= 0:
            raise ValueError(f"step_size must be positive, got {step_size}")
        self.initial_temperature = initial_temperature
        self.cooling_rate = cooling_rate
        self.step_size = step_size

    def _setup(self, instance, rng):
        self.current_: Optional[HyperParams] = None
        self.current_score_ = float("nan")
        self.temperature_ = float(self.initial_temperature)
        self.n_accepted_worse_ = 0

    def _neighbour(self, space: SearchSpace, rng: np.random.Generator) -> HyperParams:
        return {
            name: space[name].perturb(value, rng, step_size=self.step_size)
            for name, value in self.current_.items()
        }

    def _propose(self, instance, rng):
        space = instance.search_space
        if self.current_ is None:
            return [space.sample(rng) for _ in range(self.batch_size)]
        return [self._neighbour(space, rng) for _ in range(self.batch_size)]

    def acceptance_probability(self, measure: Measure, candidate_score: float) -> float:
        """Probability of moving from the current state to a candidate."""
        if self.current_ is None or measure.is_better(candidate_score, self.current_score_):
            return 1.0
        delta = -measure.improvement(self.current_score_, candidate_score)
        return math.exp(-delta / self.temperature_)

    def _observe(self, instance, records, rng):
        for record in records:
            if not record.failed:
                p = self.acceptance_probability(instance.measure, record.score)
                if p >= 1.0 or rng.uniform() < p:
                    if self.current_ is not None and p < 1.0:
                        self.n_accepted_worse_ += 1
                    self.current_ = dict(record.config)
                    self.current_score_ = record.score
            self.temperature_ *= self.cooling_rate


class DesignPointsTuner(Tuner):
    """
    Evaluates a fixed design of configurations in the given order.

    Args:
        design: List of configurations or a DataFrame with one column per parameter
        batch_size: Number of design points evaluated per round
    """

    name = "design_points"

    def __init__(
        self,
        design: Union[Sequence[HyperParams], pd.DataFrame],
        batch_size: int = CONFIG["defaults"]["batch_size"]
    ) -> None:
        super().__init__(batch_size=batch_size)
        if isinstance(design, pd.DataFrame):
            design = design.to_dict(orient="records")
        if not design:
            raise ValueError("Design needs at least one configuration")
        self.design = [dict(d) for d in design]

    def _setup(self, instance, rng):
        self._pending = list(self.design)

    def _propose(self, instance, rng):
        batch = self._pending[:self.batch_size]
        self._pending = self._pending[self.batch_size:]
        return batch


def to_optuna_distribution(param: Parameter) -> optuna.distributions.BaseDistribution:
    """Translate a parameter into the matching Optuna distribution."""
    if param.param_type == "categorical":
        return optuna.distributions.CategoricalDistribution(list(param.levels))
    if param.param_type == "int":
        return optuna.distributions.IntDistribution(
            int(math.ceil(param.lower)), int(math.floor(param.upper)), log=param.log
        )
    return optuna.distributions.FloatDistribution(float(param.lower), float(param.upper), log=param.log)


class TPETuner(Tuner):
    """
    Bayesian optimization with Optuna's TPE sampler.

    Optuna only proposes configurations (``study.ask``); evaluation, archiving
    and budgeting stay with the tuning instance, and scores are reported back
    with ``study.tell``. Failed configurations are told as failed trials.

    Args:
        n_startup_trials: Random trials before TPE takes over
        batch_size: Number of trials asked per round
        random_state: Seed for the TPE sampler
    """

    name = "tpe"

    def __init__(
        self,
        n_startup_trials: int = 10,
        batch_size: int = CONFIG["defaults"]["batch_size"],
        random_state: Optional[int] = None
    ) -> None:
        super().__init__(batch_size=batch_size, random_state=random_state)
        self.n_startup_trials = n_startup_trials

    def _setup(self, instance, rng):
        self.study_ = optuna.create_study(
            direction="minimize" if instance.measure.minimize else "maximize",
            sampler=optuna.samplers.TPESampler(
                n_startup_trials=self.n_startup_trials,
                seed=self.random_state
            )
        )
        self._distributions = {p.name: to_optuna_distribution(p) for p in instance.search_space}
        self._asked: List[optuna.trial.Trial] = []

    def _propose(self, instance, rng):
        self._asked = [self.study_.ask(self._distributions) for _ in range(self.batch_size)]
        return [{name: trial.params[name] for name in instance.search_space.names} for trial in self._asked]

    def _observe(self, instance, records, rng):
        for trial, record in zip(self._asked, records):
            if record.failed:
                self.study_.tell(trial, state=TrialState.FAIL)
            else:
                self.study_.tell(trial, record.score)
        self._asked = []


TUNERS = {
    "grid_search": GridSearchTuner,
    "random_search": RandomSearchTuner,
    "simulated_annealing": SimulatedAnnealingTuner,
    "design_points": DesignPointsTuner,
    "tpe": TPETuner,
}


def tuner(name: str, **kwargs: Any) -> Tuner:
    """
    Build a tuner by name.

    Example:
        tuner("grid_search", resolution=5, batch_size=2)
    """
    return get_tuner(name, **kwargs)


def get_tuner(tuner_or_name: Union[str, Tuner], **kwargs: Any) -> Tuner:
    """Return ``tuner_or_name`` if it already is a tuner, otherwise build it by name."""
    if isinstance(tuner_or_name, Tuner):
        return tuner_or_name
    if tuner_or_name not in TUNERS:
        raise ValueError(f"Unsupported tuner: {tuner_or_name}. Supported: {', '.join(TUNERS)}")
    return TUNERS[tuner_or_name](**kwargs)


def tune(
    learner: BaseEstimator,
    X: ArrayLike,
    y: ArrayLike,
    search_space: Union[SearchSpace, Dict[str, Any]],
    tuner: Union[str, Tuner] = CONFIG["defaults"]["tuner"],
    terminator: Optional[Terminator] = None,
    resampling: Optional[Union[str, Resampling]] = None,
    measure: Union[str, Measure] = CONFIG["defaults"]["measure"],
    n_jobs: Optional[int] = CONFIG["defaults"]["n_jobs"],
    verbose: bool = False,
    **tuner_kwargs: Any
) -> TuningInstance:
    """
    Tune a learner in one call.

    Args:
        learner: Unfitted scikit-learn compatible estimator
        X: Feature matrix
        y: Target values
        search_space: SearchSpace or dict accepted by SearchSpace.from_dict
        tuner: Tuner instance or name; ``tuner_kwargs`` are passed to named tuners
        terminator: Budget criterion
        resampling: Resampling strategy or name
        measure: Measure or name
        n_jobs: Number of joblib workers
        verbose: Whether to print progress

    Returns:
        The optimized TuningInstance; its ``result`` holds the best
        configuration and its ``archive`` the full record
    """
    instance = TuningInstance(
        learner, X, y, search_space,
        resampling=resampling,
        measure=measure,
        terminator=terminator,
        n_jobs=n_jobs,
        verbose=verbose
    )
    get_tuner(tuner, **tuner_kwargs).optimize(instance)
    return instance
