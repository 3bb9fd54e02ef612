"""
Model specifications and engine registry.

A ModelSpec names an algorithm (model type), its main arguments using
engine-independent names (``trees``, ``min_n``, ``penalty``...) and the
computational backend (engine). ``translate`` turns a spec into an
unfitted scikit-learn compatible estimator.
"""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

from sklearn.base import BaseEstimator
from sklearn.ensemble import GradientBoostingRegressor, RandomForestRegressor
from sklearn.linear_model import ElasticNet, LinearRegression
from sklearn.neighbors import KNeighborsRegressor
from sklearn.neural_network import MLPRegressor
from sklearn.svm import SVR
from sklearn.tree import DecisionTreeRegressor
from xgboost import XGBRegressor

from tabflow.utils.logging import get_logger

log = get_logger(__name__)

SUPPORTED_MODES = ("regression",)


class Tune:
    """Placeholder for a model argument whose value is found by tuning."""

    def __init__(self, id: str | None = None) -> None:  # noqa: A002
        self.id = id

    def __repr__(self) -> str:
        return f"tune({self.id!r})" if self.id else "tune()"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Tune) and other.id == self.id

    def __hash__(self) -> int:
        return hash(("tune", self.id))


def tune(id: str | None = None) -> Tune:  # noqa: A002
    """Mark a model argument for tuning: ``rand_forest(mtry=tune())``."""
    return Tune(id)


def is_tune(value: Any) -> bool:
    """Whether a value is a tuning placeholder."""
    return isinstance(value, Tune) or value == "tune()"


@dataclass(frozen=True)
class ModelSpec:
    """
    Model specification.

    Attributes:
        model_type: Algorithm, e.g. 'linear_reg', 'rand_forest'.
        mode: Prediction mode; only 'regression' is supported.
        engine: Computational backend, e.g. 'sklearn', 'xgboost'.
        args: Main arguments using engine-independent names. None means
            'engine default'.
        engine_args: Extra keyword arguments passed straight to the estimator.
    """

    model_type: str
    mode: str = "regression"
    engine: str | None = None
    args: dict[str, Any] = field(default_factory=dict)
    engine_args: dict[str, Any] = field(default_factory=dict)

    def set_engine(self, engine: str, **engine_args: Any) -> "ModelSpec":
        """Return a copy using a different engine."""
        get_engine(self.model_type, engine)
        return replace(self, engine=engine, engine_args={**self.engine_args, **engine_args})

    def set_mode(self, mode: str) -> "ModelSpec":
        """Return a copy with a different mode."""
        _check_mode(mode)
        return replace(self, mode=mode)

    def set_args(self, **args: Any) -> "ModelSpec":
        """Return a copy with main arguments updated."""
        return replace(self, args={**self.args, **args})

    def tunable_args(self) -> list[str]:
        """Main and engine arguments that hold a ``tune()`` placeholder."""
        return [k for k, v in {**self.args, **self.engine_args}.items() if is_tune(v)]

    def __str__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.args.items() if v is not None)
        return (
            f"{self.model_type} Model Specification ({self.mode})\n"
            f"  Main Arguments: {args or '<defaults>'}\n"
            f"  Computational engine: {self.engine}"
        )


def _check_mode(mode: str) -> None:
    if mode not in SUPPORTED_MODES:
        msg = f"Unsupported mode '{mode}'. Supported: {', '.join(SUPPORTED_MODES)}"
        raise ValueError(msg)


@dataclass(frozen=True)
class EngineInfo:
    """
    How to build an estimator for one (model type, engine) pair.

    Attributes:
        estimator: Estimator class, or a callable choosing one from the
            spec's main arguments.
        arg_map: Main argument name -> estimator parameter name.
        defaults: Estimator parameters set unless overridden.
        converters: Main argument name -> value converter.
    """

    estimator: type[BaseEstimator] | Callable[[dict[str, Any]], type[BaseEstimator]]
    arg_map: dict[str, str]
    defaults: dict[str, Any] = field(default_factory=dict)
    converters: dict[str, Callable[[Any], Any]] = field(default_factory=dict)

    def estimator_class(self, args: dict[str, Any]) -> type[BaseEstimator]:
        """Resolve the estimator class for the given main arguments."""
        if isinstance(self.estimator, type):
            return self.estimator
        return self.estimator(args)


def _linear_reg_class(args: dict[str, Any]) -> type[BaseEstimator]:
    # Unpenalized least squares unless a penalty is given
    return ElasticNet if args.get("penalty") is not None else LinearRegression


def _hidden_units(value: Any) -> tuple[int, ...]:
    if isinstance(value, int):
        return (value,)
    return tuple(int(v) for v in value)


_KNN_WEIGHTS = {"rectangular": "uniform", "inv": "distance"}

# (model_type, engine) -> EngineInfo
MODEL_REGISTRY: dict[tuple[str, str], EngineInfo] = {
    ("linear_reg", "sklearn"): EngineInfo(
        estimator=_linear_reg_class,
        arg_map={"penalty": "alpha", "mixture": "l1_ratio"},
        # glmnet-style default: mixture = 1 is the lasso
        defaults={"l1_ratio": 1.0, "max_iter": 10_000},
    ),
    ("rand_forest", "sklearn"): EngineInfo(
        estimator=RandomForestRegressor,
        arg_map={"mtry": "max_features", "trees": "n_estimators", "min_n": "min_samples_split"},
        defaults={"n_estimators": 500, "n_jobs": 1},
    ),
    ("boost_tree", "xgboost"): EngineInfo(
        estimator=XGBRegressor,
        arg_map={
            "trees": "n_estimators",
            "tree_depth": "max_depth",
            "learn_rate": "learning_rate",
            "min_n": "min_child_weight",
            "loss_reduction": "gamma",
            "sample_size": "subsample",
        },
        defaults={
            "n_estimators": 15,
            "max_depth": 6,
            "learning_rate": 0.3,
            "min_child_weight": 1,
            "n_jobs": 1,
        },
    ),
    ("boost_tree", "sklearn"): EngineInfo(
        estimator=GradientBoostingRegressor,
        arg_map={
            "trees": "n_estimators",
            "tree_depth": "max_depth",
            "learn_rate": "learning_rate",
            "min_n": "min_samples_split",
            "loss_reduction": "min_impurity_decrease",
            "sample_size": "subsample",
            "mtry": "max_features",
        },
    ),
    ("decision_tree", "sklearn"): EngineInfo(
        estimator=DecisionTreeRegressor,
        arg_map={
            "tree_depth": "max_depth",
            "min_n": "min_samples_split",
            "cost_complexity": "ccp_alpha",
        },
        defaults={"max_depth": 30, "min_samples_split": 2},
    ),
    ("nearest_neighbor", "sklearn"): EngineInfo(
        estimator=KNeighborsRegressor,
        arg_map={"neighbors": "n_neighbors", "weight_func": "weights", "dist_power": "p"},
        converters={"weight_func": lambda v: _KNN_WEIGHTS.get(v, v)},
    ),
    ("svm_rbf", "sklearn"): EngineInfo(
        estimator=SVR,
        arg_map={"cost": "C", "rbf_sigma": "gamma", "margin": "epsilon"},
        defaults={"kernel": "rbf"},
    ),
    ("mlp", "sklearn"): EngineInfo(
        estimator=MLPRegressor,
        arg_map={
            "hidden_units": "hidden_layer_sizes",
            "penalty": "alpha",
            "epochs": "max_iter",
            "learn_rate": "learning_rate_init",
            "activation": "activation",
        },
        defaults={"max_iter": 1000, "early_stopping": True},
        converters={"hidden_units": _hidden_units},
    ),
}

# Engine used when a spec does not name one
DEFAULT_ENGINES: dict[str, str] = {
    "linear_reg": "sklearn",
    "rand_forest": "sklearn",
    "boost_tree": "xgboost",
    "decision_tree": "sklearn",
    "nearest_neighbor": "sklearn",
    "svm_rbf": "sklearn",
    "mlp": "sklearn",
}


def get_engine(model_type: str, engine: str | None = None) -> EngineInfo:
    """
    Look up the registry entry for a model type and engine.

    Raises:
        KeyError: If the model type or engine is unknown.
    """
    if model_type not in DEFAULT_ENGINES:
        available = ", ".join(sorted(DEFAULT_ENGINES))
        msg = f"Unknown model type '{model_type}'. Available: {available}"
        raise KeyError(msg)
    engine = engine or DEFAULT_ENGINES[model_type]
    key = (model_type, engine)
    if key not in MODEL_REGISTRY:
        engines = ", ".join(e for t, e in MODEL_REGISTRY if t == model_type)
        msg = f"Unknown engine '{engine}' for {model_type}. Available: {engines}"
        raise KeyError(msg)
    return MODEL_REGISTRY[key]


def list_engines() -> list[tuple[str, str]]:
    """All registered (model type, engine) pairs."""
    return sorted(MODEL_REGISTRY)


def _new_spec(model_type: str, engine: str | None, args: dict[str, Any]) -> ModelSpec:
    engine = engine or DEFAULT_ENGINES[model_type]
    get_engine(model_type, engine)
    return ModelSpec(model_type=model_type, engine=engine, args=args)


def linear_reg(
    penalty: Any = None, mixture: Any = None, *, engine: str | None = None
) -> ModelSpec:
    """Linear regression; a penalty switches to elastic net."""
    return _new_spec("linear_reg", engine, {"penalty": penalty, "mixture": mixture})


def rand_forest(
    mtry: Any = None,
    trees: Any = None,
    min_n: Any = None,
    *,
    engine: str | None = None,
) -> ModelSpec:
    """Random forest."""
    return _new_spec("rand_forest", engine, {"mtry": mtry, "trees": trees, "min_n": min_n})


def boost_tree(
    trees: Any = None,
    tree_depth: Any = None,
    learn_rate: Any = None,
    min_n: Any = None,
    loss_reduction: Any = None,
    sample_size: Any = None,
    *,
    engine: str | None = None,
) -> ModelSpec:
    """Gradient boosted trees."""
    return _new_spec(
        "boost_tree",
        engine,
        {
            "trees": trees,
            "tree_depth": tree_depth,
            "learn_rate": learn_rate,
            "min_n": min_n,
            "loss_reduction": loss_reduction,
            "sample_size": sample_size,
        },
    )


def decision_tree(
    tree_depth: Any = None,
    min_n: Any = None,
    cost_complexity: Any = None,
    *,
    engine: str | None = None,
) -> ModelSpec:
    """Single decision tree."""
    return _new_spec(
        "decision_tree",
        engine,
        {"tree_depth": tree_depth, "min_n": min_n, "cost_complexity": cost_complexity},
    )


def nearest_neighbor(
    neighbors: Any = None,
    weight_func: Any = None,
    dist_power: Any = None,
    *,
    engine: str | None = None,
) -> ModelSpec:
    """K-nearest neighbors."""
    return _new_spec(
        "nearest_neighbor",
        engine,
        {"neighbors": neighbors, "weight_func": weight_func, "dist_power": dist_power},
    )


def svm_rbf(
    cost: Any = None,
    rbf_sigma: Any = None,
    margin: Any = None,
    *,
    engine: str | None = None,
) -> ModelSpec:
    """Radial basis function support vector machine."""
    return _new_spec("svm_rbf", engine, {"cost": cost, "rbf_sigma": rbf_sigma, "margin": margin})


def mlp(
    hidden_units: Any = None,
    penalty: Any = None,
    epochs: Any = None,
    learn_rate: Any = None,
    *,
    engine: str | None = None,
) -> ModelSpec:
    """Single-layer (or multi-layer) perceptron."""
    return _new_spec(
        "mlp",
        engine,
        {
            "hidden_units": hidden_units,
            "penalty": penalty,
            "epochs": epochs,
            "learn_rate": learn_rate,
        },
    )


def translate(spec: ModelSpec, *, seed: int | None = None) -> BaseEstimator:
    """
    Build an unfitted estimator from a model specification.

    Main arguments left at None use the engine default. Arguments the
    chosen estimator does not accept are dropped with a warning.

    Args:
        spec: Model specification.
        seed: Random seed applied to estimators with a ``random_state``,
            unless the spec sets one.

    Returns:
        Estimator instance.

    Raises:
        KeyError: If the model type or engine is unknown.
        ValueError: If the spec still holds ``tune()`` placeholders or an
            argument is not supported by the engine.
    """
    _check_mode(spec.mode)
    info = get_engine(spec.model_type, spec.engine)

    unresolved = spec.tunable_args()
    if unresolved:
        msg = (
            f"Arguments {unresolved} are marked for tuning; "
            "finalize the model before fitting"
        )
        raise ValueError(msg)

    model_class = info.estimator_class(spec.args)
    accepted = set(model_class().get_params())

    params = {k: v for k, v in info.defaults.items() if k in accepted}
    for arg, value in spec.args.items():
        if value is None:
            continue
        if arg not in info.arg_map:
            msg = (
                f"Argument '{arg}' is not supported by {spec.model_type} "
                f"engine '{spec.engine}'. Supported: {sorted(info.arg_map)}"
            )
            raise ValueError(msg)
        param = info.arg_map[arg]
        if param not in accepted:
            log.warning(
                "Argument not used by estimator, ignoring",
                arg=arg,
                estimator=model_class.__name__,
            )
            continue
        converter = info.converters.get(arg)
        params[param] = converter(value) if converter else value

    params.update(spec.engine_args)
    if seed is not None and "random_state" in accepted and "random_state" not in params:
        params["random_state"] = seed

    log.debug("Translated model spec", estimator=model_class.__name__, params=params)
    return model_class(**params)


def build_model_spec(config: Any) -> ModelSpec:
    """
    Build a model specification from a ModelSpecConfig.

    The string ``"tune()"`` in config marks an argument for tuning.
    """
    _check_mode(config.mode)
    engine = config.engine or DEFAULT_ENGINES.get(config.model_type)
    get_engine(config.model_type, engine)

    def _value(v: Any) -> Any:
        return tune() if is_tune(v) else v

    return ModelSpec(
        model_type=config.model_type,
        mode=config.mode,
        engine=engine,
        args={k: _value(v) for k, v in config.args.items()},
        engine_args={k: _value(v) for k, v in config.engine_args.items()},
    )
