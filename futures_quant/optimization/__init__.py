"""Optimization package exports."""

from futures_quant.optimization.parallel import parallel_for_each, parallel_map, resolve_workers
from futures_quant.optimization.storage import load_optimization_rows, save_optimization_rows

__all__ = [
    "load_optimization_rows",
    "parallel_for_each",
    "parallel_map",
    "resolve_workers",
    "save_optimization_rows",
]
