# utils/weights.py
"""Rescale leaf weights so they add up to exactly 100."""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from sqlmodel import Session

from models.project import Project
from models.task import Task
from models.task_template import TaskTemplate
from utils.decimals import HUNDRED, ZERO, round2, to_decimal
from utils.errors import NoLeafTasksError, NormalizationError, NotFoundError, ValidationError, ZeroSumError
from utils.nested_set import load_tree
from utils.tree import leaf_nodes

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = Decimal("0.01")
SCOPES = ("template", "task")


@dataclass
class NormalizationResult:
    updated_count: int
    final_sum: Decimal
    success: bool
    message: str


def weight_sum(leaves: Sequence) -> Decimal:
    return round2(sum((to_decimal(leaf.weight) for leaf in leaves), ZERO))


def weights_balanced(leaves: Sequence) -> bool:
    return abs(weight_sum(leaves) - HUNDRED) <= WEIGHT_TOLERANCE


def normalize_weights(session: Session, leaves: Sequence) -> NormalizationResult:
    """Scale ``leaves`` proportionally, then push the rounding residue onto
    the heaviest leaf. Adds changed rows to ``session`` without committing.

    Raises NoLeafTasksError / ZeroSumError before touching anything.
    """
    if not leaves:
        raise NoLeafTasksError()
    current = sum((to_decimal(leaf.weight) for leaf in leaves), ZERO)
    if current == 0:
        raise ZeroSumError()

    factor = HUNDRED / current
    logger.info("Normalizing %s leaf weight(s): sum %s, factor %s", len(leaves), current, factor)

    updated = 0
    for leaf in leaves:
        old = to_decimal(leaf.weight)
        new = round2(old * factor)
        if new != old:
            leaf.weight = new
            session.add(leaf)
            updated += 1
            logger.debug("  %s: %s -> %s", leaf.name, old, new)

    difference = round2(HUNDRED - weight_sum(leaves))
    if difference != 0:
        # heaviest after scaling, lowest id on ties
        heaviest = min(leaves, key=lambda leaf: (-to_decimal(leaf.weight), leaf.id or 0))
        old = to_decimal(heaviest.weight)
        heaviest.weight = round2(old + difference)
        session.add(heaviest)
        logger.info("Rounding difference %s applied to %s (%s -> %s)", difference, heaviest.name, old, heaviest.weight)

    final_sum = weight_sum(leaves)
    if final_sum == HUNDRED:
        return NormalizationResult(updated, final_sum, True,
                                   f"Normalized {updated} weight(s) to sum to exactly 100.")
    logger.warning("Final weight sum is %s, not exactly 100", final_sum)
    return NormalizationResult(updated, final_sum, False, f"Final sum is {final_sum}, not exactly 100.")


def normalize_leaf_weights(session: Session, scope: str, project_id: Optional[int] = None) -> NormalizationResult:
    """Normalize the leaves of the template catalog or of one project."""
    if scope not in SCOPES:
        raise ValidationError("scope", f"Scope must be one of {', '.join(SCOPES)}.")
    if scope == "task":
        if project_id is None:
            raise ValidationError("project_id", "A project is required for task scope.")
        if session.get(Project, project_id) is None:
            raise NotFoundError("Project", project_id)
        leaves = leaf_nodes(load_tree(session, Task, project_id))
    else:
        leaves = leaf_nodes(load_tree(session, TaskTemplate))

    try:
        result = normalize_weights(session, leaves)
    except NormalizationError as exc:
        logger.warning("Normalization skipped (%s): %s", scope, exc)
        return NormalizationResult(0, weight_sum(leaves), False, str(exc))
    session.commit()
    return result
