from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional
import typer
from tqdm import tqdm

from simmerger.algos.merge import run_merge_to_fixed_point
from simmerger.algos.trim import trim_tree
from simmerger.config.load import load_config, snapshot_config_toml
from simmerger.config.schemas import Config
from simmerger.diagnostics import LogFn, make_log
from simmerger.io.adapters import EventInput, make_adapter
from simmerger.io.cluster_store import (
    STATUS_FAILED,
    EventResult,
    flatten_tree,
    write_clusters,
    write_init,
)
from simmerger.tree.errors import StructureError
from simmerger.tree.tree import TrackTree
from simmerger.vis.clusters import save_cluster_png


def process_event(
    cfg: Config,
    event: EventInput,
    log: LogFn,
    trace: Optional[LogFn] = None,
) -> TrackTree:
    """
    Build, trim and merge the tree of one event according to cfg.

    StructureError propagates; the caller decides whether that aborts the run.
    """
    tree = TrackTree.from_records(event.tracks, event.hits, log=log)
    log(f"[event {event.event_id}] printing root {tree.root_id}")
    log(tree.stringrep())

    if cfg.pipeline.until == "build":
        return tree

    if cfg.trim.enabled:
        log(f"[event {event.event_id}] trimming tree...")
        trim_tree(tree, log=log, trace=trace)
        log(f"[event {event.event_id}] printing root {tree.root_id} after trimming")
        log(tree.stringrep())

    if cfg.pipeline.until == "trim":
        return tree

    if cfg.merge.enabled:
        log(f"[event {event.event_id}] running merging algo...")
        run_merge_to_fixed_point(
            tree,
            max_radius=cfg.merge.max_radius,
            log=log,
            max_iterations=cfg.merge.max_iterations,
        )
        log(f"[event {event.event_id}] printing root {tree.root_id} after merging")
        log(tree.stringrep())
    return tree


def process_events(cfg: Config, events: Iterable[EventInput], total: Optional[int] = None,
                   on_tree=None) -> List[EventResult]:
    """
    Process events one by one into EventResults.

    on_tree(event_id, tree) is called for every successfully processed event.
    """
    diag_level = cfg.run.diagnostics_level
    log = make_log(diag_level, 2)
    info = make_log(diag_level, 1)
    trace = log if cfg.run.trace_traversal else None

    results: List[EventResult] = []
    for event in tqdm(events, total=total, disable=not cfg.run.progress, desc="events"):
        res = EventResult(
            event_id=event.event_id,
            n_input_tracks=len(event.tracks),
            n_input_hits=len(event.hits),
        )
        try:
            tree = process_event(cfg, event, log=log, trace=trace)
        except StructureError as exc:
            if cfg.run.on_error == "raise":
                raise
            info(f"[event {event.event_id}] skipped: {exc}")
            res.status = STATUS_FAILED
            res.error = str(exc)
            results.append(res)
            continue
        res.clusters = flatten_tree(tree)
        if on_tree is not None:
            on_tree(event.event_id, tree)
        results.append(res)
    return results


def run_pipeline(
    cfg_path: str,
    *,
    max_radius: Optional[float] = None,
    until: Optional[str] = None,
    diagnostics_level: Optional[int] = None,
) -> Path:
    """
    Orchestrate build -> trim -> merge for every event of the configured input.

    CLI flags override the corresponding TOML fields when not None.

    Returns
    -------
    Path to written HDF5 file.
    """
    cfg = load_config(cfg_path)

    # ---- apply CLI overrides on top of TOML ----
    if max_radius is not None:
        cfg.merge.max_radius = max_radius
    if until is not None:
        if until not in ("build", "trim", "merge"):
            raise ValueError(f"until must be 'build', 'trim' or 'merge', got {until!r}")
        cfg.pipeline.until = until
    if diagnostics_level is not None:
        cfg.run.diagnostics_level = diagnostics_level

    diag_level = cfg.run.diagnostics_level
    if diag_level >= 1:
        print(f"[run] config = {cfg_path}")
        print(f"[run] until={cfg.pipeline.until} trim={cfg.trim.enabled} "
              f"merge={cfg.merge.enabled} max_radius={cfg.merge.max_radius}")
        print(f"[run] tracks={cfg.io.input_path} hits={cfg.io.hits_path} -> output={cfg.io.output_path}")

    adapter = make_adapter(cfg.io)
    n_events = len(adapter.event_ids())
    if cfg.run.max_events is not None:
        n_events = min(n_events, cfg.run.max_events)
    if diag_level >= 1:
        print(f"[pipeline] Got {n_events} events")

    out_path = Path(cfg.io.output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    drawn: dict = {}

    def _keep_for_png(event_id: int, tree: TrackTree) -> None:
        if not cfg.vis.export_png_on_write or drawn:
            return
        if cfg.vis.event is None or cfg.vis.event == event_id:
            drawn[event_id] = tree

    results = process_events(
        cfg,
        adapter.iter_events(max_events=cfg.run.max_events),
        total=n_events,
        on_tree=_keep_for_png,
    )

    n_failed = sum(1 for r in results if r.status == STATUS_FAILED)
    n_clusters = sum(len(r.clusters) for r in results)
    if diag_level >= 1:
        print(f"[pipeline] Processed {len(results)} events ({n_failed} failed), {n_clusters} surviving tracks")

    with write_init(str(out_path), snapshot_config_toml(cfg_path)) as f:
        write_clusters(f, results)

    for event_id, tree in drawn.items():
        out_png = out_path.with_name(f"{out_path.stem}_event{event_id}.png")
        save_cluster_png(tree, str(out_png), projection=cfg.vis.projection)
        if diag_level >= 1:
            print(f"[pipeline] Wrote PNG {out_png}")

    return out_path


# ---------------------------------------------------------------------------
# Unified CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="Simulation-truth tree trimming and cluster merging (simmerger.pipelines.core)")


@app.command()
def main(
    cfg_path: str = typer.Argument(
        ...,
        help="Path to TOML config file",
    ),
    max_radius: Optional[float] = typer.Option(
        None,
        "--max-radius",
        help="Override [merge].max_radius (cm)",
    ),
    until: Optional[str] = typer.Option(
        None,
        "--until",
        help="Override [pipeline].until: build | trim | merge",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Override [run].diagnostics_level = 2 (print every tree and merge step)",
    ),
):
    """
    Run the trim/merge pipeline for a single config.
    """
    out_path = run_pipeline(
        cfg_path,
        max_radius=max_radius,
        until=until,
        diagnostics_level=2 if verbose else None,
    )
    typer.echo(str(out_path))


if __name__ == "__main__":
    app()
