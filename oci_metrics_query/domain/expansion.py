"""Multi-value dimension expansion.

A dimension value of the form ``{a,b,c}`` (how multi-value template variables
render) selects several time series. The backend accepts one value per
dimension, so such a target is split into the cartesian product of
single-valued targets.
"""

from __future__ import annotations

import itertools
import logging
from typing import List, Optional, Sequence

from .constants import DEFAULT_MAX_DIMENSION_COMBINATIONS
from .models import Dimension, QueryTarget
from .variables import ScopedVars, VariableResolver

logger = logging.getLogger(__name__)


def split_multi_value(value: str) -> Optional[List[str]]:
    """Return the members of a ``{a,b}`` value, or None for a plain value."""
    if len(value) >= 2 and value.startswith("{") and value.endswith("}"):
        return value[1:-1].split(",")
    return None


class DimensionExpander:
    """Split targets with multi-valued dimensions into single-valued ones.

    Parameters
    ----------
    resolver: VariableResolver
        Resolves dimension values before checking for the brace form.
    max_combinations: int
        Hard ceiling on targets produced from one input target; combinations
        past it are dropped.
    """

    def __init__(
        self,
        resolver: VariableResolver,
        max_combinations: int = DEFAULT_MAX_DIMENSION_COMBINATIONS,
    ) -> None:
        if max_combinations < 1:
            raise ValueError("max_combinations must be at least 1")
        self._resolver = resolver
        self.max_combinations = max_combinations

    def expand(
        self,
        targets: Sequence[QueryTarget],
        scoped_vars: Optional[ScopedVars] = None,
    ) -> List[QueryTarget]:
        """Expand every target; order of the input targets is preserved."""
        expanded: List[QueryTarget] = []
        for target in targets:
            expanded.extend(self._expand_one(target, scoped_vars))
        return expanded

    def _expand_one(
        self, target: QueryTarget, scoped_vars: Optional[ScopedVars]
    ) -> List[QueryTarget]:
        # free-form text ignores structured dimensions
        if not target.dimensions or target.is_free_form:
            return [target]

        value_lists: List[List[str]] = []
        multi = False
        for dim in target.dimensions:
            resolved = self._resolver.resolve(dim.value, scoped_vars) or ""
            members = split_multi_value(resolved)
            if members is None:
                value_lists.append([dim.value])
            else:
                multi = True
                value_lists.append(members)
        if not multi:
            return [target]

        # first dimension varies fastest: (x,1), (y,1), (x,2), (y,2)
        combinations = [
            tuple(reversed(combination))
            for combination in itertools.islice(
                itertools.product(*reversed(value_lists)), self.max_combinations
            )
        ]
        total = 1
        for values in value_lists:
            total *= len(values)
        if total > len(combinations):
            logger.info(
                "expansion.capped",
                extra={
                    "ref_id": target.ref_id,
                    "combinations": total,
                    "kept": len(combinations),
                },
            )

        result: List[QueryTarget] = []
        for i, combination in enumerate(combinations):
            dimensions = [
                Dimension(key=dim.key, operator=dim.operator, value=value)
                for dim, value in zip(target.dimensions, combination)
            ]
            ref_id = target.ref_id if i == 0 else f"{target.ref_id}{i}"
            result.append(
                target.model_copy(
                    update={"dimensions": dimensions, "ref_id": ref_id}, deep=True
                )
            )
        return result
