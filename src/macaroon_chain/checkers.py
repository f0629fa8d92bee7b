"""FirstPartyChecker — build the ``check`` function passed to verification.

A checker holds a list of rules. A first-party caveat is satisfied when any
rule accepts it; otherwise the checker returns a reason string, which the
verifier reports as :class:`~macaroon_chain.errors.PredicateRejectedError`.

Example
-------
::

    check = (
        FirstPartyChecker()
        .satisfy_exact("op = read")
        .satisfy_prefix("account", lambda arg: arg == "42")
        .satisfy_time_before()
    )
    macaroon.verify(root_key, check)
"""
from __future__ import annotations

import datetime
from collections.abc import Callable
from typing import Optional

COND_TIME_BEFORE: str = "time-before"


class FirstPartyChecker:
    """Composable first-party caveat predicate.

    Parameters
    ----------
    clock:
        Returns the current UTC time; override in tests.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime.datetime]] = None,
    ) -> None:
        self._rules: list[Callable[[str], bool]] = []
        self._clock = clock or (lambda: datetime.datetime.now(datetime.timezone.utc))

    # ------------------------------------------------------------------
    # Rule registration
    # ------------------------------------------------------------------

    def satisfy_exact(self, condition: str) -> "FirstPartyChecker":
        """Accept caveats equal to *condition*."""
        self._rules.append(lambda caveat_id: caveat_id == condition)
        return self

    def satisfy_general(self, predicate: Callable[[str], bool]) -> "FirstPartyChecker":
        """Accept caveats for which *predicate* returns a truthy value."""
        self._rules.append(lambda caveat_id: bool(predicate(caveat_id)))
        return self

    def satisfy_prefix(
        self,
        name: str,
        predicate: Callable[[str], bool],
    ) -> "FirstPartyChecker":
        """Accept ``"<name> <arg>"`` caveats whose argument satisfies *predicate*."""

        def rule(caveat_id: str) -> bool:
            cond, _, arg = caveat_id.partition(" ")
            return cond == name and bool(predicate(arg))

        self._rules.append(rule)
        return self

    def satisfy_time_before(self) -> "FirstPartyChecker":
        """Accept ``"time-before <RFC 3339 timestamp>"`` caveats not yet expired."""
        return self.satisfy_prefix(COND_TIME_BEFORE, self._before_deadline)

    # ------------------------------------------------------------------
    # Check function protocol
    # ------------------------------------------------------------------

    def __call__(self, caveat_id: str) -> Optional[str]:
        for rule in self._rules:
            if rule(caveat_id):
                return None
        return f"caveat {caveat_id!r} not satisfied"

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _before_deadline(self, arg: str) -> bool:
        try:
            deadline = datetime.datetime.fromisoformat(arg.strip())
        except ValueError:
            return False
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=datetime.timezone.utc)
        return self._clock() < deadline


def time_before_caveat(deadline: datetime.datetime) -> str:
    """Return the first-party caveat id expiring at *deadline*."""
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=datetime.timezone.utc)
    return f"{COND_TIME_BEFORE} {deadline.astimezone(datetime.timezone.utc).isoformat()}"


def allow_all(caveat_id: str) -> Optional[str]:
    """Check function accepting every first-party caveat."""
    return None


def deny_all(caveat_id: str) -> Optional[str]:
    """Check function rejecting every first-party caveat."""
    return f"caveat {caveat_id!r} rejected"
