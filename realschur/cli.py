import typer
import yaml
import os
import logging
import numpy as np
from typing import Optional
from typing_extensions import Annotated
from realschur import runner
from realschur.config_loader import load_matrix
from realschur.schema import PipelineConfig, SelectionConfig, TasksConfig

app = typer.Typer(help="realschur: Real Schur decomposition and eigenvector CLI")

logger = logging.getLogger("realschur")

TEMPLATE = """
input:
  matrix_file: matrix.txt

schur:
  iteration_limit_factor: 30
  exceptional_shift_period: 10

selection:
  rule: real_above
  threshold: 0.0

reorder:
  separation_limit: 1.0e+10
  stability_factor: 100.0

eigenvectors:
  normalization: "2"

output:
  results_filename: schur_results.npz

plotting:
  save_plot: true
  show_plot: false
  spectrum_plot_filename: spectrum.png

tasks:
  reorder: true
  compute_eigenvectors: true
  plot_spectrum: true
""".strip()


@app.callback()
def configure(
    debug: Annotated[bool, typer.Option("--debug", help="Enable debug logging")] = False
):
    """
    Real Schur decomposition with eigenvalue reordering.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S',
    )


@app.command()
def init(
    filename: Annotated[str, typer.Argument(help="Filename for the new config")] = "config.yaml"
):
    """
    Generate a template configuration file.
    """
    if os.path.exists(filename):
        typer.confirm(f"{filename} already exists. Overwrite?", abort=True)

    with open(filename, "w") as f:
        f.write(TEMPLATE + "\n")
    typer.echo(f"Created template config: {filename}")


@app.command()
def validate(
    config_file: Annotated[str, typer.Argument(help="Path to the config.yaml file")]
):
    """
    Validate a configuration file against the schema.
    """
    if not os.path.exists(config_file):
        typer.secho(f"Error: File {config_file} not found.", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    try:
        with open(config_file, 'r') as f:
            data = yaml.safe_load(f)

        PipelineConfig.model_validate(data)
        typer.secho(f"Success: {config_file} is valid.", fg=typer.colors.GREEN)

    except Exception as e:
        typer.secho("Validation Failed:", fg=typer.colors.RED)
        typer.echo(str(e))
        raise typer.Exit(code=1)


@app.command()
def run(
    config_file: Annotated[str, typer.Argument(help="Path to the config.yaml file")]
):
    """
    Run the decomposition defined in the configuration file.
    """
    try:
        result = runner.run_pipeline(config_file)
    except Exception as e:
        typer.secho(f"Decomposition failed: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    _report(result)


@app.command()
def decompose(
    matrix_file: Annotated[str, typer.Argument(help="Matrix file (.npy or text)")],
    rule: Annotated[str, typer.Option(help="Selection rule, e.g. real_above or magnitude_below")] = "none",
    threshold: Annotated[float, typer.Option(help="Threshold of the selection rule")] = 0.0,
    eigenvectors: Annotated[bool, typer.Option(help="Compute eigenvectors of the selection")] = True,
    output: Annotated[Optional[str], typer.Option(help="Save the results to this .npz file")] = None,
):
    """
    Decompose a matrix directly, without a configuration file.
    """
    try:
        selection = SelectionConfig(rule=rule, threshold=threshold)
        config = PipelineConfig(
            input={'matrix_file': matrix_file},
            selection=selection,
            tasks=TasksConfig(compute_eigenvectors=eigenvectors),
        )
        A = load_matrix(matrix_file)
        result = runner.execute_pipeline(A, config)
    except Exception as e:
        typer.secho(f"Decomposition failed: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if output:
        np.savez(output, S=result.S, Q=result.Q, real=result.real, imag=result.imag,
                 selected=result.selected, X=result.X, status=int(result.status))
        typer.echo(f"Results saved to {output}")
    _report(result)


def _report(result: runner.PipelineResult):
    for i, (re, im) in enumerate(zip(result.real, result.imag)):
        flag = "*" if result.selected[i] else " "
        typer.echo(f"{flag} {i:4d}  {re: .10e}  {im: .10e}")
    color = typer.colors.GREEN if result.status == 0 else typer.colors.YELLOW
    typer.secho(f"Status: {result.status.name}", fg=color)


# Entry point for setuptools
def main():
    app()


if __name__ == "__main__":
    app()
