import argparse
import logging
from pathlib import Path

from split_config import SplitConfig, parse_records_per_split
from split_errors import ConfigurationError
from split_manifest import FORMATS, write_manifest
from split_planner import plan_job_splits_by_file
from split_reader import verify_splits
from split_report import print_table, split_rows, verification_rows

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Plan record-aligned byte-range splits of quoted CSV files."
    )
    parser.add_argument("--input-data", nargs="+", required=True,
                        help="CSV file(s) to plan splits for")
    parser.add_argument("--quote-char", default=None,
                        help="quote character of the CSV files (required)")
    parser.add_argument("--separator", default=None,
                        help="field separator, recorded in the config only")
    parser.add_argument("--lines-per-split", default="1",
                        help="logical records per split (default 1)")
    parser.add_argument("--num-workers", type=int, default=1)
    parser.add_argument("--mode", choices=["plan", "verify"], default="plan")
    parser.add_argument("--format", choices=FORMATS, default="csv",
                        help="manifest format when --output-dir is given")
    parser.add_argument("--output-dir", default=None,
                        help="write the split plan manifest here")
    parser.add_argument("--no-progress", action="store_true")
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = SplitConfig(
            quote_char=args.quote_char,
            records_per_split=parse_records_per_split(args.lines_per_split),
            separator=args.separator,
        ).validate()
    except ConfigurationError as exc:
        print(f"[ERROR] {exc}")
        return 2

    plans = plan_job_splits_by_file(
        [Path(p) for p in args.input_data],
        config,
        num_workers=args.num_workers,
        progress=not args.no_progress,
    )

    failed = [p for p in plans if not p.ok]
    for plan in failed:
        print(f"[ERROR] {plan.path}: {plan.error}")
    if failed:
        return 1

    splits = [s for plan in plans for s in plan.splits]
    print_table(f"SPLITS ({len(splits)})", split_rows(splits))

    if args.output_dir:
        out = write_manifest(splits, args.output_dir, fmt=args.format)
        print(f"\n[OK] Manifest written → {out}")

    if args.mode == "verify":
        results = [
            verify_splits(plan.path, plan.splits, config.quote_byte, config.records_per_split)
            for plan in plans
        ]
        print_table("VERIFICATION", verification_rows(results))
        bad = [r for r in results if not r.ok]
        if bad:
            print(f"\n[WARN] {len(bad)} file(s) failed verification")
            return 1
        print("\n[OK] All splits verified")

    return 0
