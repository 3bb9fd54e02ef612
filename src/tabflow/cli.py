"""Command-line interface for the tabflow modeling workflow."""

from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from tabflow.config.settings import PipelineConfig

app = typer.Typer(
    name="tabflow",
    help="Predictive-modeling workflow: split, preprocess, resample, tune and fit.",
    no_args_is_help=True,
)

console = Console()

ConfigOption = Annotated[
    Path,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration YAML file.",
        exists=True,
        dir_okay=False,
    ),
]


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-l",
            help="Log level (DEBUG, INFO, WARNING, ERROR). Overrides the config file.",
        ),
    ] = None,
) -> None:
    """Predictive-modeling workflow on tabular data."""
    from tabflow.utils.logging import configure_logging

    ctx.obj = {"log_level": log_level}
    configure_logging(level=log_level or "WARNING")


def _load(ctx: typer.Context, config: Path) -> "PipelineConfig":
    """Load configuration and apply its logging settings."""
    from tabflow.config.loader import load_config
    from tabflow.utils.logging import configure_logging

    console.print(f"[blue]Loading configuration from {config}[/blue]")
    try:
        pipeline_config = load_config(config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1) from e

    cli_level = (ctx.obj or {}).get("log_level")
    configure_logging(
        level=cli_level or pipeline_config.logging.level,
        json_output=pipeline_config.logging.json_output,
    )
    return pipeline_config


@app.command()
def run(
    ctx: typer.Context,
    config: ConfigOption,
    tune: Annotated[
        bool | None,
        typer.Option(
            "--tune/--no-tune",
            help="Grid-search tunable arguments. Defaults to tuning.enabled in the config.",
        ),
    ] = None,
    mlflow: Annotated[
        bool,
        typer.Option("--mlflow", help="Log the run to MLflow."),
    ] = False,
    save: Annotated[
        bool,
        typer.Option("--save/--no-save", help="Write model, predictions and plot."),
    ] = True,
) -> None:
    """Run the full workflow: split, resample, (tune), last fit."""
    from tabflow.evaluation.report import print_metrics_table
    from tabflow.pipeline import run_pipeline

    pipeline_config = _load(ctx, config)

    console.print(
        f"[blue]Running {pipeline_config.model.model_type} workflow "
        f"for project '{pipeline_config.project}'[/blue]"
    )
    try:
        result = run_pipeline(pipeline_config, tune=tune, save=save)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"[red]Pipeline failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(f"\n[dim]Split: {result.split}[/dim]")
    if result.tune_results is not None:
        print_metrics_table(
            result.tune_results.show_best(
                pipeline_config.tuning.metric, n=pipeline_config.tuning.n_best
            ),
            title=f"Best candidates ({pipeline_config.tuning.metric})",
            console=console,
        )
        console.print(f"[green]Selected: {result.best_params}[/green]")

    print_metrics_table(
        result.resample_results.collect_metrics(),
        title=f"Resampled metrics ({len(result.resamples)} {result.resamples.method} resamples)",
        console=console,
    )
    print_metrics_table(
        result.last_fit.collect_metrics(),
        title="Test set metrics",
        console=console,
    )

    if mlflow or pipeline_config.mlflow.enabled:
        from tabflow.evaluation.experiment import ExperimentTracker

        tracker = ExperimentTracker(pipeline_config)
        try:
            tracker.start_run()
            tracker.log_pipeline_result(result)
            tracker.log_workflow(result.last_fit.extract_workflow())
            console.print(f"[green]Logged to MLflow: {pipeline_config.experiment_name}[/green]")
        except Exception as e:
            console.print(f"[yellow]MLflow logging failed: {e}[/yellow]")
        finally:
            tracker.end_run()

    for name, path in result.artifacts.items():
        console.print(f"[green]Saved {name}: {path}[/green]")


@app.command()
def split(ctx: typer.Context, config: ConfigOption) -> None:
    """Load the data, describe it and show the train/test split."""
    from tabflow.data.loading import describe_dataset
    from tabflow.pipeline import ModelingPipeline

    pipeline_config = _load(ctx, config)
    pipeline = ModelingPipeline(pipeline_config)
    try:
        data = pipeline.load_data()
        summary = describe_dataset(data, pipeline_config.data.target)
        data_split = pipeline.split(data)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e

    table = Table(title=f"Dataset: {pipeline_config.project}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Rows", str(summary.n_rows))
    table.add_row("Outcome", summary.target)
    table.add_row("Numeric predictors", ", ".join(summary.numeric_predictors) or "-")
    table.add_row("Nominal predictors", ", ".join(summary.nominal_predictors) or "-")
    for stat, value in summary.target_stats.items():
        table.add_row(f"{summary.target} {stat}", f"{value:,.3f}")
    table.add_row("Split", str(data_split))
    table.add_row("Strata", data_split.strata or "-")
    console.print(table)


@app.command()
def resample(ctx: typer.Context, config: ConfigOption) -> None:
    """Estimate performance of the configured workflow by resampling."""
    from tabflow.evaluation.report import print_metrics_table
    from tabflow.evaluation.resampling import fit_resamples
    from tabflow.pipeline import ModelingPipeline

    pipeline_config = _load(ctx, config)
    pipeline = ModelingPipeline(pipeline_config)
    try:
        data_split = pipeline.split(pipeline.load_data())
        training = data_split.training()
        resamples = pipeline.resample(training)
        results = fit_resamples(
            pipeline.build_workflow(training), resamples, metrics=pipeline.metrics
        )
    except Exception as e:
        console.print(f"[red]Resampling failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    print_metrics_table(
        results.collect_metrics(summarize=False),
        title="Per-resample metrics",
        console=console,
    )
    print_metrics_table(
        results.collect_metrics(),
        title=f"Summary over {len(resamples)} resamples",
        console=console,
    )


@app.command()
def tune(ctx: typer.Context, config: ConfigOption) -> None:
    """Grid-search the tunable model arguments over resamples."""
    from tabflow.evaluation.report import print_metrics_table
    from tabflow.pipeline import ModelingPipeline

    pipeline_config = _load(ctx, config)
    if not pipeline_config.tuning.grid:
        console.print("[red]Error: tuning.grid is empty in the configuration[/red]")
        raise typer.Exit(code=1)

    pipeline = ModelingPipeline(pipeline_config)
    try:
        training = pipeline.split(pipeline.load_data()).training()
        resamples = pipeline.resample(training)
        results, best = pipeline.tune(pipeline.build_workflow(training), resamples)
    except Exception as e:
        console.print(f"[red]Tuning failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    metric = pipeline_config.tuning.metric
    print_metrics_table(
        results.show_best(metric, n=pipeline_config.tuning.n_best),
        title=f"Best candidates by {metric}",
        console=console,
    )
    console.print(f"[green]Best: {best}[/green]")


@app.command()
def predict(
    model: Annotated[
        Path,
        typer.Option(
            "--model",
            "-m",
            help="Path to a fitted workflow (.joblib).",
            exists=True,
            dir_okay=False,
        ),
    ],
    data: Annotated[
        Path,
        typer.Option(
            "--data",
            "-d",
            help="CSV with the predictor columns.",
            exists=True,
            dir_okay=False,
        ),
    ],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Output CSV. Prints a preview if omitted."),
    ] = None,
) -> None:
    """Predict new data with a saved fitted workflow."""
    import pandas as pd

    from tabflow.evaluation.report import save_predictions
    from tabflow.modeling.workflow import load_workflow

    try:
        fitted = load_workflow(model)
        new_data = pd.read_csv(data)
        augmented = fitted.augment(new_data)
    except Exception as e:
        console.print(f"[red]Prediction failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    if output is not None:
        save_predictions(augmented, output)
        console.print(f"[green]Saved {len(augmented)} predictions to {output}[/green]")
        return

    preview = augmented.head(10)
    table = Table(title=f"Predictions (first {len(preview)} of {len(augmented)})")
    for col in preview.columns:
        table.add_column(str(col), style="green" if col == ".pred" else None)
    for row in preview.itertuples(index=False):
        table.add_row(*(str(v) for v in row))
    console.print(table)


@app.command()
def models() -> None:
    """List model types, engines and their main arguments."""
    from tabflow.modeling.models import DEFAULT_ENGINES, MODEL_REGISTRY

    table = Table(title="Available models")
    table.add_column("Model", style="cyan")
    table.add_column("Engine", style="green")
    table.add_column("Estimator")
    table.add_column("Main arguments", style="dim")

    for (model_type, engine), info in sorted(MODEL_REGISTRY.items()):
        estimator = info.estimator_class({}).__name__
        default = " (default)" if DEFAULT_ENGINES.get(model_type) == engine else ""
        table.add_row(model_type, f"{engine}{default}", estimator, ", ".join(info.arg_map))

    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from tabflow import __version__

    console.print(f"tabflow version {__version__}")


if __name__ == "__main__":
    app()
