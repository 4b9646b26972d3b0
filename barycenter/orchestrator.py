import sys
import argparse
import uuid
from typing import Any, Dict, List, Optional

from barycenter.masspoint import ZERO_MASS_POLICIES
from barycenter.pipeline import BarycenterReport, compute_barycenter_file
from barycenter.stages.reduce import REDUCE_STRATEGIES
from barycenter.utils import format_duration, get_logger, load_config, validate_config

logger = get_logger(__name__)


class _UsageParser(argparse.ArgumentParser):
    """Argument parser that reports usage errors with exit status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _UsageParser(prog="barycenter", description="Compute the barycenter of the weighted points in FILE.")
    parser.add_argument("path", metavar="FILE", help="Text file with one x:y:z:mass record per line")
    parser.add_argument("--config", type=str, help="Path to an optional YAML config file")
    parser.add_argument("--mode", dest="ingest_mode", choices=["concurrent", "sequential"], help="Line ingestion strategy")
    parser.add_argument("--workers", dest="ingest_workers", type=int, help="Parse worker threads")
    parser.add_argument("--buffer-size", dest="buffer_size", type=int, help="Capacity of the parse hand-off queue")
    parser.add_argument("--max-in-flight", dest="max_in_flight", type=int, help="Max parse tasks submitted but not finished")
    parser.add_argument("--strict", dest="strict", action="store_true", help="Fail when a line cannot be parsed")
    parser.add_argument("--no-strict", dest="strict", action="store_false", help="Silently drop malformed lines")
    parser.add_argument("--reduce-strategy", dest="reduce_strategy", choices=REDUCE_STRATEGIES, help="How each fold round is evaluated")
    parser.add_argument("--reduce-workers", dest="reduce_workers", type=int, help="Threads for the 'threads' reduce strategy")
    parser.add_argument("--zero-mass", dest="zero_mass", choices=ZERO_MASS_POLICIES, help="Zero total mass: fail or propagate NaN")
    parser.add_argument("--json", dest="output_format", action="store_const", const="json", help="Print the report as JSON")
    parser.set_defaults(strict=None, output_format=None)
    return parser


def _apply_overrides(cfg: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> None:
    if not overrides:
        return

    ing = cfg.setdefault("ingest", {})
    if overrides.get("ingest_mode") is not None:
        ing["mode"] = overrides["ingest_mode"]
    if overrides.get("ingest_workers") is not None:
        ing["workers"] = int(overrides["ingest_workers"])
    if overrides.get("buffer_size") is not None:
        ing["buffer_size"] = int(overrides["buffer_size"])
    if overrides.get("max_in_flight") is not None:
        ing["max_in_flight"] = int(overrides["max_in_flight"])
    if overrides.get("strict") is not None:
        ing["strict"] = bool(overrides["strict"])

    red = cfg.setdefault("reduce", {})
    if overrides.get("reduce_strategy") is not None:
        red["strategy"] = overrides["reduce_strategy"]
    if overrides.get("reduce_workers") is not None:
        red["workers"] = int(overrides["reduce_workers"])
    if overrides.get("zero_mass") is not None:
        red["zero_mass"] = overrides["zero_mass"]

    if overrides.get("output_format") is not None:
        cfg.setdefault("output", {})["format"] = overrides["output_format"]


def render_text(report: BarycenterReport) -> str:
    return "\n".join([
        f"Loaded {report.points_loaded} values from file in {format_duration(report.load_seconds)}.",
        "System barycenter is at (%f, %f, %f) and the system's mass is %f." % (report.x, report.y, report.z, report.mass),
        f"Calculation took {format_duration(report.reduce_seconds)}.",
    ])


def render(report: BarycenterReport, cfg: Dict[str, Any]) -> str:
    if cfg.get("output", {}).get("format") == "json":
        return report.model_dump_json(indent=2)
    return render_text(report)


def run_once(
    path: str,
    *,
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> BarycenterReport:
    """Execute the pipeline once for ``path`` and print the report on stdout."""
    run_id = uuid.uuid4().hex[:8]
    logger.info("=== run start id=%s ===", run_id)

    try:
        cfg = load_config(config_path)
        _apply_overrides(cfg, overrides)
        validate_config(cfg)
        logger.info(
            "config loaded ingest=%s reduce=%s zero_mass=%s",
            cfg["ingest"]["mode"], cfg["reduce"]["strategy"], cfg["reduce"]["zero_mass"],
        )
        report = compute_barycenter_file(path, cfg)
        print(render(report, cfg))
        return report

    except Exception as e:
        logger.error("Pipeline execution failed: %s", e)
        raise
    finally:
        logger.info("=== run end id=%s ===", run_id)


def main(argv: Optional[List[str]] = None):
    """Main entry point for CLI usage."""
    args = build_parser().parse_args(argv)
    overrides = {
        "ingest_mode": args.ingest_mode,
        "ingest_workers": args.ingest_workers,
        "buffer_size": args.buffer_size,
        "max_in_flight": args.max_in_flight,
        "strict": args.strict,
        "reduce_strategy": args.reduce_strategy,
        "reduce_workers": args.reduce_workers,
        "zero_mass": args.zero_mass,
        "output_format": args.output_format,
    }
    run_once(args.path, config_path=args.config, overrides=overrides)


if __name__ == "__main__":
    main()
