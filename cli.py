#!/usr/bin/env python3
"""CLI for TestUp: discover, run and report on test units."""

import argparse
import json
import logging
import sys

import core
from testup.config import ConfigurationError, get_config


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(levelname)s: %(message)s'
    )


def _load_config(args):
    return get_config(
        args.config,
        tests_dir=args.tests_dir,
        results_dir=args.results_dir,
        coverage_list=getattr(args, 'coverage_list', None),
    )


def _fail(result: dict) -> int:
    print(f"Error: {result['error']}", file=sys.stderr)
    return 1


def _pct(value) -> str:
    return "n/a" if value is None else f"{value:.2f}%"


def cmd_discover(args):
    """List test categories and files."""
    result = core.discover_tests(_load_config(args))
    if "error" in result:
        return _fail(result)

    if args.format == 'json':
        print(json.dumps(result, indent=2))
        return 0

    print(f"Tests root: {result['tests_dir']}")
    for category in result["categories"]:
        print(f"\n{category['title']} ({len(category['tests'])} files)")
        for path in category["tests"]:
            print(f"  - {path}")
    return 0


def _print_run(result: dict):
    """Print human-readable run summary."""
    totals = result.get("totals", {})
    print(f"\n{'='*60}")
    print(f"Results: {result.get('run_dir', 'N/A')}")
    print(f"Pass: {totals.get('pass', 0)}  Fail: {totals.get('fail', 0)}  Warn: {totals.get('warn', 0)}")
    if result.get("elapsed") is not None:
        print(f"Time: {result['elapsed']:.2f}s")

    sizes = result.get("size_percentages")
    if sizes:
        print(f"Sizes: {sizes['small']}% small, {sizes['medium']}% medium, {sizes['large']}% large")

    print()
    for f in result.get("files", []):
        print(f"  [{f['status']:<7}] {f['element_id']}")
        for name in f.get("failed_tests", [])[:10]:
            print(f"             - {name}")

    errors = result.get("errors", {})
    if errors:
        print(f"\nNot run ({len(errors)}):")
        for element_id, error in errors.items():
            print(f"  - {element_id}: {error}")

    coverage = result.get("coverage")
    if coverage:
        print(f"\nUnit Test Coverage: {_pct(coverage.get('total'))}")
        print(f"Coverage Details: {coverage.get('html')}")
    print(f"{'='*60}\n")


def _run_exit_code(result: dict) -> int:
    totals = result.get("totals", {})
    return 0 if totals.get("fail", 0) == 0 and totals.get("warn", 0) == 0 and not result.get("errors") else 1


def cmd_run(args):
    """Run tests in this process."""
    result = core.run_tests(
        categories=args.category,
        files=args.file,
        coverage=args.coverage,
        buffer=args.buffer,
        config=_load_config(args),
    )
    if "error" in result:
        return _fail(result)

    if args.format == 'json':
        print(json.dumps(result, indent=2, default=str))
    else:
        _print_run(result)
    return _run_exit_code(result)


def cmd_launch(args):
    """Run tests in a worker process and wait for its results."""
    result = core.launch_tests(
        categories=args.category,
        files=args.file,
        work_dir=args.work_dir,
        coverage=args.coverage,
        config=_load_config(args),
    )
    if "error" in result:
        return _fail(result)

    if args.format == 'json':
        print(json.dumps(result, indent=2, default=str))
    else:
        _print_run(result)
    return _run_exit_code(result)


def cmd_run_manifest(args):
    """Worker side of `launch`: run the tests listed in a manifest."""
    result = core.run_worker(args.manifest, args.results_dir, args.sentinel, config=_load_config(args))
    if "error" in result:
        return _fail(result)
    print(json.dumps(result, indent=2))
    return 0


def cmd_parse(args):
    """Parse a results file or results directory."""
    result = core.parse_results(args.path, config=_load_config(args))
    if "error" in result:
        return _fail(result)

    if args.format == 'json':
        print(json.dumps(result, indent=2))
        return 0

    print(f"Pass: {result['pass']}  Fail: {result['fail']}  Warn: {result['warn']}")
    for f in result["files"]:
        print(f"\n{f['element_id']} ({f['status']})")
        for t in f["tests"]:
            print(f"  {t['status']:<5} {t['size']:<6} {t['name']}")
    return 0


def cmd_coverage(args):
    """Compute API coverage for a run."""
    result = core.get_coverage(args.run, config=_load_config(args))
    if "error" in result:
        return _fail(result)

    if args.format == 'json':
        print(json.dumps(result, indent=2))
        return 0

    print(f"Run: {result['run_dir']}")
    print(f"Total coverage: {_pct(result['total_coverage'])} ({result['covered']}/{result['total']} methods)")
    print()
    for name, cls in result["classes"].items():
        print(f"  {name:<30} {_pct(cls['coverage']):>8}  "
              f"({len(cls['covered'])}/{len(cls['covered']) + len(cls['not_covered'])})")
    print(f"\nCoverage Details: {result['html']}")
    return 0


def cmd_list_runs(args):
    """List results directories."""
    result = core.list_runs(args.limit, config=_load_config(args))
    if "error" in result:
        return _fail(result)

    if args.format == 'json':
        print(json.dumps(result, indent=2))
        return 0

    print(f"Runs in {result['results_dir']} ({result['total']} total):")
    for r in result["runs"]:
        print(f"  - {r['run']}  ({r['files']} results files)")
    return 0


def cmd_cleanup(args):
    """Delete old results directories."""
    action = "Would delete" if args.dry_run else "Deleting"
    keep = "the configured number of" if args.keep is None else str(args.keep)
    print(f"{action} old runs, keeping {keep} most recent...")
    if args.dry_run:
        print("(Dry run - no changes will be made)")
    print()

    result = core.cleanup_runs(args.keep, args.dry_run, config=_load_config(args))
    if "error" in result:
        return _fail(result)

    if args.format == 'json':
        print(json.dumps(result, indent=2))
    else:
        print(f"Kept: {len(result['runs_kept'])} runs")
        print(f"Removed: {len(result['runs_removed'])} runs")
        for removed in result["runs_removed"]:
            print(f"  - {removed['run']}: {removed['status']}")
    return 0


def _add_selection(p):
    p.add_argument('--category', '-c', action='append', help='Category to run (repeatable)')
    p.add_argument('--file', action='append', help='Test file to run (repeatable, keeps order)')
    p.add_argument('--coverage', dest='coverage', action='store_true', default=None,
                   help='Compute API coverage')
    p.add_argument('--no-coverage', dest='coverage', action='store_false',
                   help='Skip API coverage')
    p.add_argument('--format', '-f', choices=['text', 'json'], default='text')


def main():
    parser = argparse.ArgumentParser(description='TestUp test runner and coverage reporter')
    parser.add_argument('-v', '--verbose', action='store_true')
    parser.add_argument('--config', help='YAML config file')
    parser.add_argument('--tests-dir', help='Directory holding test categories')
    parser.add_argument('--results-dir', help='Directory holding results runs')

    sub = parser.add_subparsers(dest='command')

    p = sub.add_parser('discover', help='List test categories and files')
    p.add_argument('--format', '-f', choices=['text', 'json'], default='text')

    p = sub.add_parser('run', help='Run tests')
    _add_selection(p)
    p.add_argument('--coverage-list', help='Reference list of Class.method entries')
    p.add_argument('--buffer', action='store_true', help='Capture output in memory before saving')

    p = sub.add_parser('launch', help='Run tests in a worker process')
    _add_selection(p)
    p.add_argument('--coverage-list', help='Reference list of Class.method entries')
    p.add_argument('--work-dir', help='Directory for the manifest and sentinel files')

    p = sub.add_parser('run-manifest', help='Run the tests listed in a manifest (worker)')
    p.add_argument('manifest', help='Manifest file, one test path per line')
    p.add_argument('--sentinel', help='File to create when done (default: DONE beside the manifest)')

    p = sub.add_parser('parse', help='Parse a results file or results directory')
    p.add_argument('path', help='*_results.txt file or run directory')
    p.add_argument('--format', '-f', choices=['text', 'json'], default='text')

    p = sub.add_parser('coverage', help='Compute API coverage for a run')
    p.add_argument('--run', help='Run directory (default: latest)')
    p.add_argument('--coverage-list', help='Reference list of Class.method entries')
    p.add_argument('--format', '-f', choices=['text', 'json'], default='text')

    p = sub.add_parser('list-runs', help='List results directories')
    p.add_argument('--limit', type=int, default=10)
    p.add_argument('--format', '-f', choices=['text', 'json'], default='text')

    p = sub.add_parser('cleanup', help='Delete old results directories')
    p.add_argument('--keep', '-k', type=int, help='Number of runs to keep')
    p.add_argument('--dry-run', action='store_true', help='Show what would be deleted without deleting')
    p.add_argument('--format', '-f', choices=['text', 'json'], default='text')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    cmds = {
        'discover': cmd_discover,
        'run': cmd_run,
        'launch': cmd_launch,
        'run-manifest': cmd_run_manifest,
        'parse': cmd_parse,
        'coverage': cmd_coverage,
        'list-runs': cmd_list_runs,
        'cleanup': cmd_cleanup,
    }
    try:
        return cmds[args.command](args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
