"""Generate a set of exercises, optionally across worker processes.

A worksheet usually needs several exercises at once, for example one per
mode or one per species. :func:`generate_batch` takes a list of keyword
dictionaries for :func:`counterpoint_generator.generate_exercise` and
returns the exercises in the same order.

Example
-------
>>> configs = [
...     {"species": 1, "mode": "dorian", "finalis": "D"},
...     {"species": 3, "mode": "aeolian", "finalis": "A"},
... ]
>>> exercises = generate_batch(configs, workers=2, base_seed=10)
>>> [ex.species for ex in exercises]
[1, 3]

Seeding
-------
Worker scheduling must not change the output, so every configuration is
given an explicit ``seed`` before it is dispatched. Configurations that
already carry one keep it; with ``base_seed`` the rest receive
``base_seed + position``. Without either they draw from the worker's
global random state and are not reproducible.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ProcessPoolExecutor
from typing import Any, Dict, Iterable, List, Optional

from . import SUPPORTED_SPECIES, Exercise, generate_exercise

__all__ = ["prepare_configs", "generate_batch"]


def prepare_configs(
    configs: Iterable[Dict[str, Any]], base_seed: Optional[int] = None
) -> List[Dict[str, Any]]:
    """Copy ``configs`` and assign seeds from ``base_seed``.

    Raises
    ------
    ValueError
        If a configuration names a species outside 1-5.
    """

    prepared = []
    for position, config in enumerate(configs):
        entry = dict(config)
        species = entry.get("species", 1)
        if species not in SUPPORTED_SPECIES:
            raise ValueError(f"Configuration {position}: unknown species {species}")
        if base_seed is not None and entry.get("seed") is None:
            entry["seed"] = base_seed + position
        prepared.append(entry)
    return prepared


def _generate_one(config: Dict[str, Any]) -> Exercise:
    return generate_exercise(**config)


def generate_batch(
    configs: Iterable[Dict[str, Any]],
    *,
    workers: Optional[int] = None,
    base_seed: Optional[int] = None,
) -> List[Exercise]:
    """Generate one exercise per configuration.

    Parameters
    ----------
    configs:
        Keyword dictionaries for :func:`counterpoint_generator.generate_exercise`.
    workers:
        Number of worker processes, defaulting to the CPU count. With a
        single worker (or a single configuration) everything runs in the
        calling process.
    base_seed:
        Seed for configurations without their own ``seed``, offset by
        position.

    Returns
    -------
    List[Exercise]
        Exercises in input order. Failed generations are returned as
        exercises whose ``result.success`` is ``False``.

    Raises
    ------
    ValueError
        If ``workers`` is zero or negative, or a configuration is invalid.
    """

    if workers is not None and workers <= 0:
        raise ValueError("workers must be positive")
    prepared = prepare_configs(configs, base_seed)
    workers = min(workers or os.cpu_count() or 1, max(len(prepared), 1))

    if workers == 1:
        exercises = [_generate_one(config) for config in prepared]
    else:
        with ProcessPoolExecutor(max_workers=workers) as pool:
            exercises = list(pool.map(_generate_one, prepared))

    failed = sum(1 for ex in exercises if not ex.result.success)
    if failed:
        logging.warning("%d of %d exercises could not be generated", failed, len(exercises))
    return exercises
