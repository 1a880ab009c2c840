from typing import Any, Dict

from .mutation import MutationResult


def init_metrics() -> Dict[str, Any]:
    return {
        'repairs': 0,
        'candidate_score': 0.0,
        'candidate_index': 0,
        'candidates': [],
        'passes': {},
        'passes_applied': 0,
        'passes_skipped': 0,
        'runtime_ms': 0,
        'phase_ms': {},
    }


def record(metrics: Dict[str, Any], name: str, result: MutationResult) -> None:
    """Store one pass outcome under ``metrics['passes'][name]``."""
    entry = {'applied': bool(result.applied)}
    entry.update(result.stats)
    metrics.setdefault('passes', {})[name] = entry
    key = 'passes_applied' if result.applied else 'passes_skipped'
    metrics[key] = metrics.get(key, 0) + 1


def _stat(metrics: Dict[str, Any], name: str, key: str, default='-'):
    value = metrics.get('passes', {}).get(name, {}).get(key)
    return default if value is None else value


def summarize(metrics: Dict[str, Any]) -> str:
    """Human-readable digest of a floor's metrics, one fact per line."""
    lines = [
        f"kind: {metrics.get('kind', '-')}  seed: {metrics.get('floor_seed', '-')}  depth: {metrics.get('depth', '-')}",
        f"candidate score: {metrics.get('candidate_score', 0.0)} (chose #{metrics.get('candidate_index', 0)}"
        f" of {len(metrics.get('candidates', []))})",
        f"stairs path: {metrics.get('path_length', '-')} tiles, repairs: {metrics.get('repairs', 0)}",
        f"path bridges: {_stat(metrics, 'stairs_weave', 'bridges_before')} -> "
        f"{_stat(metrics, 'stairs_weave', 'bridges_after')}, "
        f"bypasses: {_stat(metrics, 'stairs_weave', 'bypass_loops', 0)}, "
        f"redundant: {_stat(metrics, 'stairs_weave', 'redundant')}",
        f"regions: {_stat(metrics, 'biome_zones', 'regions', 0)}",
        f"longest lane: {_stat(metrics, 'lane_dampening', 'longest_before')} -> "
        f"{_stat(metrics, 'lane_dampening', 'longest_after')}",
        f"special rooms: {metrics.get('special_rooms', 0)}, on spine: {metrics.get('spine_room_count', 0)}, "
        f"min separation: {metrics.get('special_room_min_sep', '-')}",
    ]
    passes = metrics.get('passes', {})
    if passes:
        marks = ' '.join(f"{name}={'y' if entry.get('applied') else 'n'}" for name, entry in passes.items())
        lines.append(f"passes: {marks}")
    phases = metrics.get('phase_ms', {})
    if phases:
        timing = ' '.join(f"{name}={ms}ms" for name, ms in phases.items())
        lines.append(f"phases: {timing} total={metrics.get('runtime_ms', 0)}ms")
    return '\n'.join(lines)
