"""Domain resolvers.

Each resolver is a plain function ``(Findings) -> Resolution | None``.
``RESOLVERS`` fixes their invocation order; the aggregator keeps that order
when it merges their output, so it is part of the engine's contract.
"""

import logging
from collections.abc import Callable

from coding_engine.schemas.findings import Findings
from coding_engine.services.code_types import Resolution
from coding_engine.services.resolvers.cardiovascular import resolve_cardiovascular
from coding_engine.services.resolvers.diabetes import resolve_diabetes
from coding_engine.services.resolvers.gastro import resolve_gastro
from coding_engine.services.resolvers.infection import resolve_infection
from coding_engine.services.resolvers.neoplasm import resolve_neoplasm
from coding_engine.services.resolvers.obstetrics import resolve_obstetrics
from coding_engine.services.resolvers.poisoning import resolve_poisoning
from coding_engine.services.resolvers.psychiatric import resolve_psychiatric
from coding_engine.services.resolvers.renal import resolve_renal
from coding_engine.services.resolvers.respiratory import resolve_respiratory
from coding_engine.services.resolvers.trauma import resolve_trauma

logger = logging.getLogger(__name__)

Resolver = Callable[[Findings], Resolution | None]

RESOLVERS: list[tuple[str, Resolver]] = [
    ("diabetes", resolve_diabetes),
    ("renal", resolve_renal),
    ("cardiovascular", resolve_cardiovascular),
    ("infection", resolve_infection),
    ("gastro", resolve_gastro),
    ("respiratory", resolve_respiratory),
    ("neoplasm", resolve_neoplasm),
    ("trauma", resolve_trauma),
    ("obstetrics", resolve_obstetrics),
    ("psychiatric", resolve_psychiatric),
    ("poisoning", resolve_poisoning),
]


def run_resolvers(findings: Findings) -> list[Resolution]:
    """Run every resolver in registry order, dropping the ones that abstain."""
    resolutions = []
    for name, resolver in RESOLVERS:
        resolution = resolver(findings)
        if resolution is None:
            continue
        logger.debug(f"Resolver {name} -> {resolution.code} (+{len(resolution.secondary_codes)})")
        resolutions.append(resolution)
    return resolutions


__all__ = [
    "RESOLVERS",
    "Resolver",
    "run_resolvers",
    "resolve_cardiovascular",
    "resolve_diabetes",
    "resolve_gastro",
    "resolve_infection",
    "resolve_neoplasm",
    "resolve_obstetrics",
    "resolve_poisoning",
    "resolve_psychiatric",
    "resolve_renal",
    "resolve_respiratory",
    "resolve_trauma",
]
