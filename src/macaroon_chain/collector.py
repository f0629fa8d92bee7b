"""Discharge collection — gather every discharge a macaroon needs.

For each third-party caveat in the primary macaroon, and transitively in
every discharge obtained along the way, an acquisition function is asked for
a discharge macaroon. Each discharge is bound to the primary signature as it
arrives. The result is the list ``[primary, *discharges]`` ready to hand to
:func:`~macaroon_chain.verifier.verify` (after the primary itself).

Two interfaces are provided:

``collect_discharges``
    Coroutine. One task per pending caveat inside a single
    :class:`asyncio.TaskGroup`; the first failure cancels the rest and is
    raised as :class:`~macaroon_chain.errors.DischargeAcquisitionFailedError`.
    Discharges are ordered depth-first by caveat position, so the result is
    the same however the acquisitions interleave.
``discharge``
    Callback form. ``get_discharge`` receives success/failure continuations
    that may be invoked from any thread; ``on_ok`` fires exactly once with
    discharges in arrival order, or ``on_error`` fires exactly once with the
    first failure.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable

from macaroon_chain.caveat import ThirdPartyCaveat
from macaroon_chain.errors import DischargeAcquisitionFailedError, MacaroonError
from macaroon_chain.macaroon import Macaroon

logger = logging.getLogger(__name__)

AcquireFunction = Callable[[str, str, str], Awaitable[Macaroon]]
"""``acquire(primary_location, third_party_location, caveat_id)``."""

GetDischargeFunction = Callable[
    [str, str, str, Callable[[Macaroon], None], Callable[[BaseException], None]],
    None,
]
"""``get_discharge(primary_location, third_party_location, caveat_id, on_success, on_failure)``."""


# ---------------------------------------------------------------------------
# Structured (asyncio) collection
# ---------------------------------------------------------------------------


async def collect_discharges(macaroon: Macaroon, acquire: AcquireFunction) -> list[Macaroon]:
    """Acquire and bind every discharge required by *macaroon*.

    Parameters
    ----------
    macaroon:
        The primary macaroon. It is not modified.
    acquire:
        Coroutine function returning the discharge macaroon for a caveat.

    Returns
    -------
    list[Macaroon]
        The primary macaroon first, then the bound discharges.

    Raises
    ------
    DischargeAcquisitionFailedError
        For the first acquisition that fails; all others are cancelled.
    """
    return await _TaskGroupCollector(macaroon, acquire).run()


class _TaskGroupCollector:
    def __init__(self, macaroon: Macaroon, acquire: AcquireFunction) -> None:
        self._macaroon = macaroon
        self._acquire = acquire
        self._primary_signature = macaroon.signature
        # Keyed by the caveat index path from the primary, e.g. (1, 0).
        self._found: dict[tuple[int, ...], Macaroon] = {}
        self._first_error: DischargeAcquisitionFailedError | None = None

    async def run(self) -> list[Macaroon]:
        try:
            async with asyncio.TaskGroup() as group:
                self._schedule(group, self._macaroon, ())
        except BaseExceptionGroup:
            if self._first_error is None:
                raise
            raise self._first_error from self._first_error.cause

        discharges = [self._found[path] for path in sorted(self._found)]
        logger.info(
            "Collected %d discharge(s) for macaroon %r",
            len(discharges),
            self._macaroon.identifier,
        )
        return [self._macaroon, *discharges]

    def _schedule(
        self,
        group: asyncio.TaskGroup,
        macaroon: Macaroon,
        path: tuple[int, ...],
    ) -> None:
        for index, caveat in enumerate(macaroon.caveats):
            if isinstance(caveat, ThirdPartyCaveat):
                group.create_task(self._fetch(group, caveat, path + (index,)))

    async def _fetch(
        self,
        group: asyncio.TaskGroup,
        caveat: ThirdPartyCaveat,
        path: tuple[int, ...],
    ) -> None:
        logger.debug("Requesting discharge for caveat at %r", caveat.location)
        try:
            acquired = await self._acquire(
                self._macaroon.location, caveat.location, caveat.identifier
            )
            if not isinstance(acquired, Macaroon):
                raise TypeError(f"expected Macaroon, got {type(acquired).__name__}")
        except Exception as exc:
            error = DischargeAcquisitionFailedError(caveat.identifier, caveat.location, exc)
            if self._first_error is None:
                self._first_error = error
                logger.warning("Discharge acquisition failed: %s", error)
            raise error from exc

        bound = acquired.clone().bind(self._primary_signature)
        self._found[path] = bound
        self._schedule(group, bound, path)


# ---------------------------------------------------------------------------
# Callback collection
# ---------------------------------------------------------------------------


def discharge(
    macaroon: Macaroon,
    get_discharge: GetDischargeFunction,
    on_ok: Callable[[list[Macaroon]], None],
    on_error: Callable[[DischargeAcquisitionFailedError], None],
) -> None:
    """Gather discharges for *macaroon* through a callback-style acquirer.

    ``get_discharge`` is called once per third-party caveat with the
    primary location, the third party's location, the caveat id and two
    continuations. Each continuation may be called from any thread; only the
    first call of either continuation for a given request is honoured.

    Parameters
    ----------
    macaroon:
        The primary macaroon. It is not modified.
    get_discharge:
        Acquisition function.
    on_ok:
        Called once with ``[macaroon, *bound_discharges]`` when all
        requests have succeeded.
    on_error:
        Called once with the first failure; later results are discarded.
    """
    _CallbackCollector(macaroon, get_discharge, on_ok, on_error).start()


class _CallbackCollector:
    def __init__(
        self,
        macaroon: Macaroon,
        get_discharge: GetDischargeFunction,
        on_ok: Callable[[list[Macaroon]], None],
        on_error: Callable[[DischargeAcquisitionFailedError], None],
    ) -> None:
        self._macaroon = macaroon
        self._get_discharge = get_discharge
        self._on_ok = on_ok
        self._on_error = on_error
        self._primary_signature = macaroon.signature
        self._discharges: list[Macaroon] = [macaroon]
        self._pending = 0
        self._failed = False
        self._lock = threading.Lock()

    def start(self) -> None:
        caveats = self._macaroon.third_party_caveats()
        with self._lock:
            self._pending += len(caveats)
            done = self._pending == 0
        self._request_all(caveats)
        if done:
            self._on_ok(list(self._discharges))

    def _request_all(self, caveats: list[ThirdPartyCaveat]) -> None:
        for caveat in caveats:
            self._request(caveat)

    def _request(self, caveat: ThirdPartyCaveat) -> None:
        # Acquired by whichever continuation is called first.
        settled = threading.Lock()

        def on_success(acquired: Macaroon) -> None:
            if not settled.acquire(blocking=False):
                return
            self._succeeded(caveat, acquired)

        def on_failure(err: BaseException) -> None:
            if not settled.acquire(blocking=False):
                return
            self._fail(caveat, err)

        logger.debug("Requesting discharge for caveat at %r", caveat.location)
        try:
            self._get_discharge(
                self._macaroon.location,
                caveat.location,
                caveat.identifier,
                on_success,
                on_failure,
            )
        except Exception as exc:
            on_failure(exc)

    def _succeeded(self, caveat: ThirdPartyCaveat, acquired: Macaroon) -> None:
        if not isinstance(acquired, Macaroon):
            self._fail(caveat, TypeError(f"expected Macaroon, got {type(acquired).__name__}"))
            return
        bound = acquired.clone().bind(self._primary_signature)
        caveats = bound.third_party_caveats()
        with self._lock:
            if self._failed:
                return
            self._discharges.append(bound)
            self._pending += len(caveats) - 1
            done = self._pending == 0
            snapshot = list(self._discharges) if done else []
        self._request_all(caveats)
        if done:
            logger.info(
                "Collected %d discharge(s) for macaroon %r",
                len(snapshot) - 1,
                self._macaroon.identifier,
            )
            self._on_ok(snapshot)

    def _fail(self, caveat: ThirdPartyCaveat, err: object) -> None:
        cause = err if isinstance(err, BaseException) else MacaroonError(str(err))
        with self._lock:
            if self._failed:
                return
            self._failed = True
        error = DischargeAcquisitionFailedError(caveat.identifier, caveat.location, cause)
        logger.warning("Discharge acquisition failed: %s", error)
        self._on_error(error)
