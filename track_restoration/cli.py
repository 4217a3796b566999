"""
Track Restoration: Correction Planning Script

Reads a longitudinal-level (or alignment) record and produces a correction
plan: restored waveform, waveband breakdown, optimized plan line and the
per-position track movements.

Usage:
    track-restoration <record_file> [options]
    track-restoration --synthetic [options]

The record is a two-column text file (distance m, value mm), comma
separated for .csv, whitespace separated otherwise. Lines starting with #
and a header line are ignored.
"""

import argparse
import json
import sys
from pathlib import Path

import numpy as np

from .config import (PLAN_LINE_METHODS, RESTORATION_PRESETS, OptimizerOptions, PlanLineOptions,
                     PriorityPolicy, RestorationOptions, WavebandOptions)
from .engine import CorrectionPlan, RestorationEngine
from .errors import RestorationError
from .log import configure_logging, get_logger
from .models import FixedPoint, MeasurementSeries, MovementConstraint
from .movement import split_work_sections
from .synthetic import generate_irregularity
from .wavebands import WavebandAnalysis

logger = get_logger(__name__)


# ===== Input =====

def load_record(filepath: Path) -> MeasurementSeries:
    """Two-column (distance, value) record; rows without a distance are dropped."""
    delimiter = "," if filepath.suffix.lower() == ".csv" else None
    data = np.genfromtxt(filepath, delimiter=delimiter, comments="#", dtype=np.float64, ndmin=2)
    if data.shape[1] < 2:
        raise RestorationError(f"{filepath.name}: expected two columns (distance, value)")
    data = data[np.isfinite(data[:, 0])]
    logger.debug("Loaded %d rows from %s", len(data), filepath)
    return MeasurementSeries(data[:, 0], data[:, 1])


def parse_fixed_point(text: str) -> FixedPoint:
    """START:END:MAX in metres and millimetres, e.g. 120:135:0."""
    try:
        start, end, limit = (float(part) for part in text.split(":"))
        return FixedPoint(start, end, limit)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid fixed point {text!r} ({e})") from None


# ===== Report Generation =====

def generate_report(plan: CorrectionPlan, analysis: WavebandAnalysis,
                    sections: list) -> dict:
    restored = plan.restoration.restored
    report = {
        "restoration": {
            "min_wavelength": restored.min_wavelength,
            "max_wavelength": restored.max_wavelength,
            "points": len(restored),
            "statistics": plan.restoration.statistics.to_dict(),
        },
        "wavebands": analysis.to_dict(),
        "initial_plan_line": {
            "points": len(plan.initial.plan_line),
            "upward_ratio": plan.initial.statistics.upward_ratio,
            "valid": plan.initial.validation.valid,
            "issues": plan.initial.validation.issues,
            "warnings": plan.initial.validation.warnings,
            "recommendation": plan.initial.validation.recommendation,
        },
        "movement": plan.movement.summary.to_dict(),
        "work_sections": [
            {"start_distance": s.start_distance, "end_distance": s.end_distance,
             "max_movement": s.max_movement, "avg_movement": s.avg_movement}
            for s in sections
        ],
    }
    if plan.optimization is not None:
        opt = plan.optimization
        report["optimization"] = {
            "iterations": opt.iterations,
            "converged": opt.converged,
            "improvement": opt.improvement,
            "statistics": opt.statistics.to_dict(),
        }
    return report


def export_csv(plan: CorrectionPlan, output_dir: Path):
    """Per-position movements for external tools."""
    csv_path = output_dir / "movements.csv"
    with open(csv_path, "w") as f:
        f.write("distance_m,current_mm,target_mm,movement_mm,priority\n")
        for m in plan.movement.movements:
            f.write(f"{m.distance:.3f},{m.current_value:.3f},{m.target_value:.3f},"
                    f"{m.movement:.3f},{m.priority}\n")
    print(f"  Saved movements.csv ({len(plan.movement.movements)} rows)")


def print_summary(source: str, plan: CorrectionPlan, analysis: WavebandAnalysis, sections: list):
    restored = plan.restoration.restored
    stats = plan.restoration.statistics
    summary = plan.movement.summary

    print()
    print(f"{'='*60}")
    print("TRACK CORRECTION PLAN")
    print(f"{'='*60}")
    print(f"Source:   {source}")
    print(f"Length:   {restored.distance[-1] - restored.distance[0]:.1f} m ({len(restored)} points)")
    print(f"Band:     {restored.min_wavelength:g}-{restored.max_wavelength:g} m")
    print(f"Restored: sigma={stats.sigma:.2f} mm rms={stats.rms:.2f} mm "
          f"range {stats.min:+.1f}..{stats.max:+.1f} mm")

    print()
    print("Wavebands:")
    for band in analysis.bands:
        bar = "#" * int(round(band.contribution_percent / 5))
        print(f"  {band.band.name:>10} {band.band.label:>14} {band.contribution_percent:5.1f}% {bar}")
    if analysis.dominant_wavelength is not None:
        print(f"  dominant wavelength {analysis.dominant_wavelength.wavelength:.1f} m, "
              f"effective {analysis.effective_wavelength:.1f} m")

    print()
    validation = plan.initial.validation
    print(f"Initial plan line: upward ratio {plan.initial.statistics.upward_ratio:.0%}"
          f" ({'valid' if validation.valid else 'needs work'})")
    for issue in validation.issues:
        print(f"  issue: {issue}")
    for warning in validation.warnings:
        print(f"  warning: {warning}")

    if plan.optimization is not None:
        opt = plan.optimization
        status = "converged" if opt.converged else "not converged"
        print(f"Optimized:         upward ratio {opt.statistics.upward_ratio:.0%}"
              f" after {opt.iterations} iteration(s), {status}")

    print()
    print("Movement:")
    print(f"  lift max {summary.movement.max:+.1f} mm, lower max {summary.movement.min:+.1f} mm")
    print(f"  priority high={summary.high_priority} medium={summary.medium_priority} "
          f"low={summary.low_priority}")
    if summary.clamped:
        print(f"  {summary.clamped} position(s) clamped to their movement limit")
    print(f"  sigma {summary.sigma_before:.2f} -> {summary.sigma_after:.2f} mm "
          f"({summary.improvement_rate:.1f}% improvement)")
    if len(sections) > 1:
        print(f"  {len(sections)} work sections")


# ===== Main =====

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="track-restoration",
        description="Track Restoration: Correction Planning",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Reads a two-column (distance m, value mm) record and prints a\n"
               "correction plan with restored waveform, wavebands and movements.",
    )
    parser.add_argument("record_file", nargs="?", help="Path to record file (.csv or .txt)")
    parser.add_argument("--synthetic", action="store_true",
                        help="Use a generated 500 m record instead of a file")
    parser.add_argument("--data-type", choices=sorted(RESTORATION_PRESETS), default=None,
                        help="Use the restoration band preset for a measurement type")
    parser.add_argument("--min-wavelength", type=float, default=None,
                        help="Lower band edge in m (default: 6.0)")
    parser.add_argument("--max-wavelength", type=float, default=None,
                        help="Upper band edge in m (default: 100.0)")
    parser.add_argument("--interval", type=float, default=None,
                        help="Sampling interval in m (default: inferred from distances)")
    parser.add_argument("--method", choices=PLAN_LINE_METHODS, default="moving-average",
                        help="Initial plan line method (default: moving-average)")
    parser.add_argument("--window", type=int, default=800,
                        help="Plan line moving-average window in samples (default: 800)")
    parser.add_argument("--target-ratio", type=float, default=0.7,
                        help="Target upward ratio (default: 0.7)")
    parser.add_argument("--max-upward", type=float, default=50.0,
                        help="Maximum lift in mm (default: 50)")
    parser.add_argument("--max-downward", type=float, default=10.0,
                        help="Maximum lowering in mm (default: 10)")
    parser.add_argument("--iterations", type=int, default=100,
                        help="Optimizer iteration limit (default: 100)")
    parser.add_argument("--standard-limit", type=float, default=30.0,
                        help="Standard movement limit in mm (default: 30)")
    parser.add_argument("--maximum-limit", type=float, default=50.0,
                        help="Maximum movement limit in mm (default: 50)")
    parser.add_argument("--fixed", type=parse_fixed_point, action="append", default=[],
                        metavar="START:END:MAX",
                        help="Fixed point range with its movement limit (repeatable)")
    parser.add_argument("--no-optimize", action="store_true",
                        help="Skip the upward-priority optimization")
    parser.add_argument("--output", type=str, default=None,
                        help="Directory for report.json and movements.csv")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--log-json", action="store_true", help="Log as JSON lines")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging("DEBUG" if args.verbose else "WARNING", json_format=args.log_json)

    if not args.synthetic and not args.record_file:
        parser.error("a record file or --synthetic is required")

    try:
        if args.synthetic:
            source = "synthetic"
            print("Generating synthetic record...")
            series = generate_irregularity()
        else:
            filepath = Path(args.record_file)
            if not filepath.exists():
                print(f"Error: file not found: {filepath}", file=sys.stderr)
                return 1
            source = filepath.name
            print(f"Loading {filepath}...")
            series = load_record(filepath)
        print(f"  {len(series)} points")

        if args.data_type:
            restoration = RestorationOptions.for_data_type(args.data_type, args.interval)
        else:
            restoration = RestorationOptions(
                min_wavelength=args.min_wavelength or 6.0,
                max_wavelength=args.max_wavelength or 100.0,
                sampling_interval=args.interval,
            )
        constraints = MovementConstraint(
            fixed_points=tuple(args.fixed),
            standard_limit=args.standard_limit,
            maximum_limit=args.maximum_limit,
            upward_priority=not args.no_optimize,
        )
        optimizer_options = OptimizerOptions(
            max_upward=args.max_upward,
            max_downward=args.max_downward,
            target_upward_ratio=args.target_ratio,
            iteration_limit=args.iterations,
        )

        engine = RestorationEngine()
        print("Computing correction plan...")
        plan = engine.compute_correction_plan(
            series,
            restoration=restoration,
            plan_options=PlanLineOptions(method=args.method, window_size=args.window),
            optimizer_options=optimizer_options,
            constraints=constraints,
            policy=PriorityPolicy(),
        )
        print("Analyzing wavebands...")
        analysis = engine.analyze_wavebands(series, WavebandOptions(sampling_interval=args.interval))
    except RestorationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    sections = split_work_sections(plan.movement.movements, constraints.standard_limit)

    if args.output:
        output_dir = Path(args.output)
        output_dir.mkdir(parents=True, exist_ok=True)
        report_path = output_dir / "report.json"
        with open(report_path, "w") as f:
            json.dump(generate_report(plan, analysis, sections), f, indent=2, default=str)
        print("  Saved report.json")
        export_csv(plan, output_dir)

    print_summary(source, plan, analysis, sections)
    return 0


if __name__ == "__main__":
    sys.exit(main())
