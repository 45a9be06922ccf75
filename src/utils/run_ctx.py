"""
Run context helpers wrapped around one evaluation so it is repeatable and tracked:
set_seed(...) -> deterministic retry jitter / tie-breaks.
mlflow_run(...) -> opens/closes an MLflow run; log_scores(...) pushes numeric results into it.
"""
import os, random, numpy as np
from contextlib import contextmanager
import mlflow

EXPERIMENT = os.getenv("MLFLOW_EXPERIMENT", "candidate_evidence")


def set_seed(seed: int = 42):
    random.seed(seed)
    np.random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)


@contextmanager
def mlflow_run(name: str, tags: dict | None = None, experiment: str = EXPERIMENT):
    mlflow.set_experiment(experiment)
    with mlflow.start_run(run_name=name):  # name -> e.g. eval-octocat
        for k, v in (tags or {}).items():
            mlflow.set_tag(k, v)
        yield


def log_scores(metrics: dict):
    """log only the numeric entries; None / text are skipped."""
    for k, v in metrics.items():
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            continue
        mlflow.log_metric(k, float(v))
