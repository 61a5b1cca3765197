#!/usr/bin/env python3
"""
Locate occupancy run artifacts by partial timestamp or run name.

Default search root:
  $OCCUPANCY_RESULTS_DIR/runs  (falls back to results/runs)

Usage examples:
  python find_run_results.py 20261019_1412
  python find_run_results.py pilot
  python find_run_results.py pilot --json

Options:
  --runs-dir PATH   Override base runs directory
  --json            Emit JSON summary instead of human-readable text
"""
from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, Any, List

from occupancy.analysis.settings import default_results_dir


def _default_runs_dir() -> Path:
    return default_results_dir() / 'runs'


def _collect_artifacts(run_dir: Path) -> Dict[str, Any]:
    info: Dict[str, Any] = {'run_name': run_dir.name}
    manifest_path = run_dir / 'manifest.json'
    if manifest_path.exists():
        manifest = json.loads(manifest_path.read_text())
        info['fit'] = manifest.get('fit', {})
        info['convergence'] = manifest.get('convergence', {})
        info['dims'] = manifest.get('dims', {})

    info['paths'] = {
        'run_dir': str(run_dir),
        'summaries': sorted(str(p) for p in run_dir.glob('*.csv')),
        'figures': sorted(str(p) for p in (run_dir / 'figures').glob('*.png')),
        'log': str(run_dir / 'run.log') if (run_dir / 'run.log').exists() else None,
    }
    return info


def find_runs(query: str, runs_dir: Path) -> List[Dict[str, Any]]:
    results: List[Dict[str, Any]] = []
    if not runs_dir.exists():
        return results
    for sub in sorted(runs_dir.iterdir()):
        if sub.is_dir() and query in sub.name:
            results.append(_collect_artifacts(sub))
    return results


def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description='Locate occupancy run artifacts by partial timestamp or run name.')
    ap.add_argument('query', help='Substring of the run folder name (e.g., 20261019 or pilot)')
    ap.add_argument('--runs-dir', type=str, default=None, help='Override base runs directory')
    ap.add_argument('--json', action='store_true', help='Emit JSON output')
    args = ap.parse_args(argv)

    runs_dir = Path(args.runs_dir) if args.runs_dir else _default_runs_dir()
    matches = find_runs(args.query, runs_dir)

    if args.json:
        print(json.dumps({'query': args.query, 'runs_dir': str(runs_dir), 'matches': matches}, indent=2))
        return 0 if matches else 1

    if not matches:
        print(f"No runs matched '{args.query}' under {runs_dir}")
        return 1
    print(f"Found {len(matches)} match(es) for '{args.query}' under {runs_dir}:")
    for i, m in enumerate(matches, 1):
        print(f"\n[{i}] {m['run_name']}")
        print(f"    run_dir: {m['paths']['run_dir']}")
        fit = m.get('fit') or {}
        if fit:
            state = 'reused' if fit.get('reused') else 'sampled'
            print(f"    fit ({state}): {fit.get('cache_path')}")
        conv = m.get('convergence') or {}
        if conv:
            print(f"    max R-hat {conv.get('max_rhat', float('nan')):.3f}, "
                  f"min ESS {conv.get('min_ess', float('nan')):.0f}")
        if m['paths']['summaries']:
            print("    summary CSV(s):")
            for p in m['paths']['summaries']:
                print(f"      - {p}")
        if m['paths']['figures']:
            print("    figure(s):")
            for p in m['paths']['figures']:
                print(f"      - {p}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
