# collisions.py
"""
Resolution of the collisions detected during the force pass.

Collisions are resolved in a second pass, after all forces are known.
The CollisionGraph maps a particle index i to the ascending set of local
offsets of later particles it collides with (offset k is particle
i + 1 + k). Pairs are resolved in ascending order of i:

- Same-sign pairs merge inelastically: the later particle j absorbs i.
  Partners of i that are still pending are re-attached to j, so a chain
  a-b-c always collapses into a single survivor.
- Opposite-sign pairs exchange momentum elastically and both survive.
"""
import logging
from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from particle import ParticleParams, ParticleSystem

# --- Data Contracts ---
#
# class CollisionGraph:
#   - add(self, i: int, offset: int) -> None
#   - pop_first(self) -> Tuple[int, List[int]]: smallest key with its offsets
#     in ascending order; the entry is removed.
#
# class CollisionResolver:
#   - resolve(self, particles, graph, params) -> None:
#     - Side Effects: mutates particles in place, empties graph.
#     - Invariants: len(particles) is unchanged; every connected component
#       of same-sign collisions ends with exactly one live particle.


class CollisionGraph:
    """Transient map from particle index to colliding successor offsets."""
    def __init__(self):
        self._successors: Dict[int, Set[int]] = {}

    def __len__(self) -> int:
        return len(self._successors)

    def __bool__(self) -> bool:
        return bool(self._successors)

    def __contains__(self, i: int) -> bool:
        return i in self._successors

    def add(self, i: int, offset: int) -> None:
        self._successors.setdefault(int(i), set()).add(int(offset))

    def successors(self, i: int) -> List[int]:
        return sorted(self._successors.get(i, ()))

    def pop_first(self) -> Tuple[int, List[int]]:
        i = min(self._successors)
        return i, sorted(self._successors.pop(i))

    def clear(self) -> None:
        self._successors.clear()


def collide_elastic(particles: ParticleSystem, i: int, j: int, small_scale: float) -> None:
    """
    Elastic momentum exchange along the line of centers of i and j.
    """
    dims = particles.dims
    n = particles.kinematics[j, :dims] - particles.kinematics[i, :dims]
    distance = np.linalg.norm(n)
    if distance == 0.0:
        return
    n /= distance
    v_i = particles.kinematics[i, dims:].copy()
    v_j = particles.kinematics[j, dims:].copy()
    m_i, m_j = particles.mass[i], particles.mass[j]

    m_eff = 1.0 / (1.0 / m_i + 1.0 / m_j)  # mass > 0
    impulse = (1.0 + abs(small_scale)) * m_eff * np.dot(n, v_i - v_j)

    particles.kinematics[i, dims:] = v_i - impulse / m_i * n
    particles.kinematics[j, dims:] = v_j + impulse / m_j * n


class CollisionResolver:
    """
    Performs inelastic merges and elastic collisions recorded in a CollisionGraph.
    """
    def resolve(self, particles: ParticleSystem, graph: CollisionGraph, params: ParticleParams) -> None:
        if not params.detect_collisions:
            graph.clear()
            return
        merges = 0
        while graph:
            i, offsets = graph.pop_first()
            # i may have been consumed since it was recorded
            if not particles.alive[i]:
                continue
            merged_offset, pending = self._resolve_successors(particles, i, offsets, params)
            if merged_offset is None:
                continue
            merges += 1
            # i merged into j: j inherits the partners i had not reached yet
            j = i + 1 + merged_offset
            for offset in pending:
                graph.add(j, offset - merged_offset - 1)
        if merges:
            logging.debug(f"Resolved {merges} inelastic merges.")

    def _resolve_successors(
        self, particles: ParticleSystem, i: int, offsets: List[int], params: ParticleParams
    ) -> Tuple[Optional[int], List[int]]:
        """
        Collides i with its successors in ascending order.

        Returns:
            Tuple: the offset of the successor that absorbed i (or None) and
            the offsets that were still pending at that moment.
        """
        for pos, offset in enumerate(offsets):
            j = i + 1 + offset
            small_scale = params.collision_scale * particles.short[i] * particles.short[j]
            if small_scale > 0.0:
                particles.absorb(j, i)
                return offset, offsets[pos + 1:]
            elif small_scale < 0.0:
                collide_elastic(particles, i, j, small_scale)
        return None, []
