"""Collapse repeated ACTION directives into one canonical action per name.

Streaming re-parses emit the same directive many times, each a little more
complete than the last. The authoritative occurrence is the maximum under a
total order: combined length of the long-form values, then parameter count,
then position in the text. An occurrence that is at least as long on every
long-form key and strictly longer on one always ranks higher, so growing
prefixes of one directive resolve to the longest of them.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable, List, Mapping, Tuple

from synapse_core.core.config import DEFAULT_LONG_FORM_KEYS
from synapse_core.models import CanonicalAction

from .scanner import Directive

LOGGER = logging.getLogger("synapse.scanner")

Rank = Tuple[int, int]


class ActionDeduplicator:
    def __init__(self, long_form_keys: FrozenSet[str] | None = None) -> None:
        self.long_form_keys = frozenset(long_form_keys or DEFAULT_LONG_FORM_KEYS)

    def rank(self, params: Mapping[str, str]) -> Rank:
        long_form = sum(len(params.get(key, "") or "") for key in self.long_form_keys)
        return long_form, len(params)

    def supersedes(self, candidate: Mapping[str, str], incumbent: Mapping[str, str]) -> bool:
        """True when ``candidate`` ranks strictly above ``incumbent``, ignoring position."""
        return self.rank(candidate) > self.rank(incumbent)

    def fold(self, directives: Iterable[Directive]) -> List[CanonicalAction]:
        """Reduce action directives to one entry per name, in first-seen order.

        On a full tie the later occurrence is kept.
        """

        order: List[str] = []
        best: Dict[str, Tuple[Rank, int, Mapping[str, str]]] = {}
        for position, directive in enumerate(directives):
            if directive.kind != "action":
                continue
            name = directive.name
            params = directive.raw_params
            entry = (self.rank(params), position, params)
            if name not in best:
                order.append(name)
                best[name] = entry
            elif entry[:2] > best[name][:2]:
                best[name] = entry
        actions = [CanonicalAction(name=name, params=dict(best[name][2])) for name in order]
        if actions:
            LOGGER.debug("Canonical actions resolved", extra={"actions": [action.name for action in actions]})
        return actions


def dedupe_actions(directives: Iterable[Directive]) -> List[CanonicalAction]:
    return ActionDeduplicator().fold(directives)


__all__ = ["ActionDeduplicator", "dedupe_actions"]
