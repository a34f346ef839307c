from __future__ import annotations

import json
import pathlib
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pipefit._config import get_user_settings
from pipefit.kernel import KernelUnavailable, load_kernel
from pipefit.mesh import analyze_mesh
from pipefit.params import InvalidInput, default_params, load_params, max_wall_thickness, sanitize_params
from pipefit.session import AdapterSession
from pipefit.standards import BSP_TABLE

console = Console()
app = typer.Typer(help="Configure BSP pipe-fitting adapters and export them as binary STL.")


def _working_params(params: pathlib.Path | None) -> dict[str, Any]:
    if params is None:
        return default_params()
    if not params.exists():
        raise typer.BadParameter(f"Parameter file {params} does not exist.")
    try:
        return load_params(params)
    except InvalidInput as exc:
        raise typer.BadParameter(str(exc)) from exc


def _next_available_path(path: pathlib.Path) -> pathlib.Path:
    """Return a non-conflicting path by appending ' (n)' before the suffix."""

    if not path.exists():
        return path

    parent = path.parent
    stem = path.stem
    suffix = path.suffix
    n = 1
    while True:
        candidate = parent / f"{stem} ({n}){suffix}"
        if not candidate.exists():
            return candidate
        n += 1


def _format_point(point: tuple[float, float, float]) -> str:
    return "(" + ", ".join(f"{value:g}" for value in point) + ")"


@app.command()
def sizes() -> None:
    """
    List the supported nominal sizes and their thread dimensions.
    """

    table = Table(title="BSP thread table (BSPP / BSPT)")
    table.add_column("Size", style="cyan")
    table.add_column("Major Ø (mm)", justify="right")
    table.add_column("Pitch (mm)", justify="right")
    table.add_column("TPI", justify="right")
    table.add_column("Max wall (mm)", justify="right", style="magenta")
    for size, entry in BSP_TABLE.items():
        table.add_row(
            size,
            f"{entry.major_diameter_mm:.3f}",
            f"{entry.pitch_mm:.3f}",
            str(entry.threads_per_inch),
            f"{max_wall_thickness(size, size):.3f}",
        )
    console.print(table)


@app.command()
def sanitize(
    params: pathlib.Path | None = typer.Argument(None, help="JSON parameter file; defaults are used when omitted."),
) -> None:
    """
    Print the canonical parameter record that would be sent to the mesh kernel.
    """

    config = sanitize_params(_working_params(params))
    console.print_json(json.dumps(config.to_record()))


@app.command()
def export(
    params: pathlib.Path | None = typer.Argument(None, help="JSON parameter file; defaults are used when omitted."),
    output: pathlib.Path = typer.Option(
        pathlib.Path("adapter.stl"),
        "--output",
        "-o",
        help="Path to the STL file that will be produced.",
    ),
    kernel: str | None = typer.Option(
        None,
        "--kernel",
        "-k",
        help="Mesh kernel as 'module:callable' or 'file.py:callable' (overrides PIPEFIT_KERNEL and pipefit.cfg).",
    ),
    overwrite: bool = typer.Option(False, "--overwrite", help="Allow replacing an existing STL."),
    header: str | None = typer.Option(None, "--header", help="Text for the 80-byte STL header."),
) -> None:
    """
    Sanitize the parameters, run the mesh kernel and save the adapter as a binary STL file.
    """

    working = _working_params(params)
    settings = get_user_settings()
    target = kernel or settings.kernel
    if not target:
        raise typer.BadParameter("No mesh kernel configured; pass --kernel or set PIPEFIT_KERNEL.")
    try:
        mesh_kernel = load_kernel(target)
    except KernelUnavailable as exc:
        raise typer.BadParameter(str(exc)) from exc

    final_output = output
    if output.exists():
        if not overwrite:
            final_output = _next_available_path(output)
            console.print(f"[yellow]Output {output} exists; writing to {final_output} instead.[/yellow]")

    session = AdapterSession(
        mesh_kernel,
        console=console,
        params=working,
        stl_header=settings.stl_header if header is None else header,
    )
    if not session.regenerate() or session.mesh is None or session.markers is None:
        raise typer.Exit(code=1)

    analysis = analyze_mesh(session.mesh)
    for issue in analysis.issues():
        console.print(f"[yellow]Mesh issue: {issue}.[/yellow]")

    try:
        data = session.export_stl(final_output)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Failed to export STL: {exc}") from exc

    marker_a, marker_b = session.markers
    console.print(
        Panel(
            f"Wrote {analysis.n_triangles} triangles ({len(data)} bytes) to [green]{final_output}[/green].\n"
            f"End A marker {_format_point(marker_a)}, end B marker {_format_point(marker_b)}.",
            title="Export complete",
            border_style="green",
        )
    )
