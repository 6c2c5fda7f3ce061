from __future__ import annotations

import typer
from typing import Optional

from simmerger.algos.merge import run_merge_to_fixed_point
from simmerger.algos.trim import trim_tree
from simmerger.io.adapters import TableAdapter
from simmerger.tree.tree import TrackTree

app = typer.Typer(help="Print the track tree of one event before and after trimming/merging")

@app.command()
def dump(
    tracks_path: str = typer.Argument(..., help="Tracks table (csv)"),
    hits_path: str = typer.Argument(..., help="Hits table (csv)"),
    event: Optional[int] = typer.Option(None, "--event", "-e", help="Event id (defaults to the first one)"),
    max_radius: float = typer.Option(10.0, "--max-radius", "-r", help="Merge radius (cm)"),
    geometry: Optional[str] = typer.Option(None, "--geometry", "-g", help="det_id,x,y,z table"),
    describe: bool = typer.Option(False, "--describe", help="Show energy and pdgid per track"),
):
    """Build the tree of one event and print it after each stage."""
    adapter = TableAdapter.from_paths(tracks_path, hits_path, fmt="csv", geometry_path=geometry)
    wanted = adapter.event_ids()[0] if event is None else event
    for ev in adapter.iter_events():
        if ev.event_id == wanted:
            break
    else:
        raise typer.BadParameter(f"event {wanted} not found in {tracks_path}")

    tree = TrackTree.from_records(ev.tracks, ev.hits)
    show = (lambda t: t.describe()) if describe else (lambda t: t.stringrep())
    typer.echo(f"== event {wanted}: built")
    typer.echo(show(tree))
    trim_tree(tree)
    typer.echo(f"== event {wanted}: trimmed")
    typer.echo(show(tree))
    run_merge_to_fixed_point(tree, max_radius=max_radius)
    typer.echo(f"== event {wanted}: merged (max_radius={max_radius})")
    typer.echo(show(tree))

if __name__ == "__main__":
    app()
