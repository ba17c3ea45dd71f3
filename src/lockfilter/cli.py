"""Command line entry points for one-off filtering outside a build pipeline."""

from __future__ import annotations

import argparse
import dataclasses
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from lockfilter.config import load_policy
from lockfilter.errors import LockfilterError
from lockfilter.intercept.orchestrator import Interceptor
from lockfilter.lockfile.io import read_lock, read_lock_text
from lockfilter.lockfile.model import PackageId
from lockfilter.policy import FilterPolicy, Strategy
from lockfilter.stubs.archive import write_crate


def cmd_filter(args: argparse.Namespace) -> int:
    policy = _policy(args, strategy=Strategy.LOCK)
    interceptor = Interceptor(policy=policy)
    raw = read_lock_text(args.lock)
    interceptor.prepare_vendor_tree(raw, _emit_lock(args.output))
    if args.report:
        interceptor.report.to_json(args.report)
    return 0


def cmd_prune_vendor(args: argparse.Namespace) -> int:
    policy = _policy(args, strategy=Strategy.VENDOR)
    if args.stub:
        policy = dataclasses.replace(policy, vendor_action="stub")
    lock = read_lock(args.lock) if args.lock else None
    interceptor = Interceptor(policy=policy, lock=lock)
    interceptor.vendor_tree_ready(Path(args.vendor_dir), lambda vendor_dir: vendor_dir)
    sys.stdout.write(interceptor.report.to_json())
    return 0


def cmd_stub(args: argparse.Namespace) -> int:
    policy = _policy(args, strategy=Strategy.FETCH)
    if args.mode is not None:
        policy = dataclasses.replace(policy, stub_mode=args.mode)
    interceptor = Interceptor(policy=policy, feature_hints={args.name: tuple(args.feature)})
    stub = interceptor.stub_for(
        PackageId(name=args.name, version=args.version),
        known_checksum=args.checksum,
    )
    out_dir = Path(args.out)
    if args.crate:
        path = write_crate(stub, out_dir)
    else:
        path = stub.write_to(out_dir / stub.dirname)
    print(path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lockfilter",
        description="Filter Cargo lock documents and vendor trees",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to lockfilter.toml")
    sub = parser.add_subparsers(dest="command", required=True)

    filter_p = sub.add_parser("filter", help="Rewrite a lock document without excluded packages")
    filter_p.add_argument("lock", help="Input Cargo.lock")
    filter_p.add_argument("-o", "--output", default="-", help="Output path, '-' for stdout")
    filter_p.add_argument("--report", default=None, help="Write a JSON report to this path")
    filter_p.set_defaults(handler=cmd_filter)

    vendor_p = sub.add_parser("prune-vendor", help="Remove excluded packages from a vendor tree")
    vendor_p.add_argument("vendor_dir", help="Vendor directory")
    vendor_p.add_argument("--lock", default=None, help="Lock document to check for divergence")
    vendor_p.add_argument("--stub", action="store_true", help="Replace instead of delete")
    vendor_p.set_defaults(handler=cmd_prune_vendor)

    stub_p = sub.add_parser("stub", help="Write a placeholder for an excluded package")
    stub_p.add_argument("name")
    stub_p.add_argument("version")
    stub_p.add_argument("--out", required=True, help="Destination directory")
    stub_p.add_argument("--checksum", default=None, help="Known package checksum")
    stub_p.add_argument(
        "--mode",
        choices=("minimal", "feature-complete"),
        default=None,
        help="Override the configured stub mode",
    )
    stub_p.add_argument("--feature", action="append", default=[], help="Extra feature name")
    stub_p.add_argument("--crate", action="store_true", help="Write a .crate archive")
    stub_p.set_defaults(handler=cmd_stub)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.handler(args))
    except LockfilterError as exc:
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        return 2


def _policy(args: argparse.Namespace, *, strategy: Strategy) -> FilterPolicy:
    policy = load_policy(args.config)
    return dataclasses.replace(policy, strategy=strategy)


def _emit_lock(output: str) -> Callable[[str], tuple[str, Path]]:
    def emit(lock_text: str) -> tuple[str, Path]:
        if output == "-":
            sys.stdout.write(lock_text)
            return lock_text, Path.cwd()
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(lock_text, encoding="utf-8")
        return lock_text, path.parent

    return emit


if __name__ == "__main__":
    raise SystemExit(main())
