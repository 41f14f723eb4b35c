"""Linear interpolation between DB-sampled neighbors.

Both functions take the neighbor rows as returned by
``OsuUserRepository.pp_neighbors`` / ``rank_neighbors``: the first row is
treated as the upper neighbor, the optional second row as the lower one.
The branch structure below is the contract; keep it as is.
"""

from __future__ import annotations

from typing import Sequence

# Single-precision machine epsilon; pp values are stored as 32-bit floats upstream.
PP_EPSILON = 1.1920929e-07


class RankApproximationError(ValueError):
    """Sampled neighbors do not enclose the requested value."""


def interpolate_rank(pp: float, neighbors: Sequence[tuple[int, float]]) -> int:
    if not neighbors:
        return 0

    higher_rank, higher_pp = neighbors[0]

    if len(neighbors) > 1:
        lower_rank, lower_pp = neighbors[1]
        if not lower_pp <= pp <= higher_pp:
            raise RankApproximationError(
                f"{pp}pp is not between {lower_pp} and {higher_pp}"
            )

        if abs(higher_pp - lower_pp) <= PP_EPSILON:
            return max(min(lower_rank, higher_rank) - 1, 0)

        percent = (higher_pp - pp) / (higher_pp - lower_pp)
        rank = percent * max(lower_rank - higher_rank, 0)
        return higher_rank + int(rank)
    elif higher_pp < pp:
        return higher_rank
    elif higher_pp > pp or higher_rank > 0:
        return higher_rank + 1
    else:
        return 0


def interpolate_pp(rank: int, neighbors: Sequence[tuple[int, float]]) -> float:
    if not neighbors:
        return 0.0

    higher_rank, higher_pp = neighbors[0]

    if len(neighbors) > 1:
        lower_rank, lower_pp = neighbors[1]
        if not higher_rank <= rank <= lower_rank:
            raise RankApproximationError(
                f"rank {rank} is not between {higher_rank} and {lower_rank}"
            )

        if lower_rank == higher_rank:
            return max(lower_pp, higher_pp) + 0.01

        percent = (lower_rank - rank) / (lower_rank - higher_rank)
        pp = percent * max(higher_pp - lower_pp, 0.0)
        return lower_pp + pp
    elif higher_rank > rank:
        return higher_pp + 0.01
    elif higher_rank < rank or higher_pp > 0.0:
        return higher_pp - 0.01
    else:
        return 0.0


__all__ = ["RankApproximationError", "interpolate_pp", "interpolate_rank"]
