"""
Calculation Session
===================

Owns everything one user is working on: the base address, the stop
sequence, the current result and the loading / error state.  Sessions are
plain objects held by a ``SessionRegistry``; nothing is module-global, so
any number of sessions (browser tabs, tests) can run side by side.

Supersession
------------
Each ``calculate()`` call takes a generation number when it starts.  When
it finishes it only writes back if its generation is still the latest, so
a slow older run can never overwrite a newer one (last trigger wins, not
last completion).

Bounded wait
------------
The whole calculation runs under ``asyncio.wait_for``; after the timeout
(90 s by default) the session is forced into ``FAILED`` so the caller is
never left in ``LOADING``.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, replace
from typing import Callable, Mapping, Optional

from .compliance import (
    DEFAULT_RULE,
    ComplianceRule,
    Geocoder,
    RouteProvider,
    evaluate_distances,
    evaluate_route,
)
from .entities import (
    GeoPoint,
    InvalidStateTransition,
    LocationNotFound,
    ProviderUnavailable,
    RouteResult,
    StopResolutionError,
    UpgradeRequired,
)
from .enums import CALCULATION_TRANSITIONS, CalculationStatus, Feature
from .records import SearchRecord
from .share import decode_query, with_route_metrics
from .stops import StopSequence

logger = logging.getLogger(__name__)
fault_logger = logging.getLogger("truckcheck.faults")

PROVIDER_ERROR_MESSAGE = "Location services are temporarily unavailable. Please try again."
TIMEOUT_MESSAGE = "The calculation timed out. Please try again."
GENERIC_ERROR_MESSAGE = "An error occurred while calculating the distance"


class CalculationInputError(ValueError):
    """Field-level problem the user can fix (e.g. a blank address)."""


@dataclass(frozen=True)
class CalculationOutcome:
    generation: int
    result: Optional[RouteResult] = None
    error: Optional[str] = None
    failed_stop: Optional[int] = None
    applied: bool = True

    @property
    def ok(self) -> bool:
        return self.result is not None


class CalculationSession:
    def __init__(
        self,
        session_id: Optional[str] = None,
        entitled: bool = False,
        rule: ComplianceRule = DEFAULT_RULE,
        timeout_seconds: float = 90.0,
    ):
        self.id = session_id or uuid.uuid4().hex
        self.entitled = entitled
        self.rule = rule
        self.timeout_seconds = timeout_seconds

        self.base_address = ""
        self.base_location: Optional[GeoPoint] = None
        self.stops = StopSequence()
        self.result: Optional[RouteResult] = None
        self.status = CalculationStatus.IDLE
        self.error: Optional[str] = None
        self.failed_stop: Optional[int] = None
        self._generation = 0

    # ── State ─────────────────────────────────────────────────────

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def loading(self) -> bool:
        return self.status == CalculationStatus.LOADING

    @property
    def view_only(self) -> bool:
        """Holding more stops than the caller may edit or recalculate."""
        return not self.entitled and len(self.stops) > 1

    def transition_to(self, new_status: CalculationStatus) -> None:
        allowed = CALCULATION_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {self.status} to {new_status}"
            )
        self.status = new_status

    # ── Editing ───────────────────────────────────────────────────

    def set_base_address(self, address: str) -> None:
        self.base_address = address
        if self.base_location is not None and self.base_location.place_name != address:
            self.base_location = None

    def set_base_location(self, point: GeoPoint) -> None:
        self.base_address = point.place_name
        self.base_location = point

    def ensure_editable(self) -> None:
        """Restored multi-stop results stay visible but locked for free sessions."""
        if self.view_only:
            raise UpgradeRequired(Feature.MULTI_STOP)

    def add_stop(self):
        return self.stops.add_stop(self.entitled)

    def reset(self) -> None:
        self._generation += 1  # orphan anything still in flight
        self.base_address = ""
        self.base_location = None
        self.stops.reset()
        self.result = None
        self.error = None
        self.failed_stop = None
        self.status = CalculationStatus.IDLE

    # ── Calculation ───────────────────────────────────────────────

    async def calculate(self, geocoder: Geocoder, router: RouteProvider) -> CalculationOutcome:
        self.ensure_editable()

        self._generation += 1
        generation = self._generation
        base_address = self.base_address
        base_location = self.base_location
        stops = self.stops.snapshot()

        self.transition_to(CalculationStatus.LOADING)
        self.error = None
        self.failed_stop = None
        self.result = None

        try:
            base, result = await asyncio.wait_for(
                self._run(base_address, base_location, stops, geocoder, router),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            fault_logger.error(
                "Calculation %s exceeded %.0fs", self.id, self.timeout_seconds
            )
            return self._fail(generation, TIMEOUT_MESSAGE)
        except CalculationInputError as exc:
            return self._fail(generation, str(exc))
        except StopResolutionError as exc:
            return self._fail(generation, self._describe(exc.cause, str(exc)), exc.position)
        except (LocationNotFound, ProviderUnavailable) as exc:
            return self._fail(generation, self._describe(exc, str(exc)))
        except Exception:
            logger.exception("Unhandled error in calculation %s", self.id)
            return self._fail(generation, GENERIC_ERROR_MESSAGE)

        if generation != self._generation:
            logger.debug("Discarding superseded calculation %d", generation)
            return CalculationOutcome(generation, result=result, applied=False)

        self._write_back(base_address, base, result)
        self.result = result
        self.transition_to(CalculationStatus.SUCCEEDED)
        return CalculationOutcome(generation, result=result)

    async def _run(self, base_address, base_location, stops, geocoder, router):
        if base_location is not None and base_location.place_name == base_address:
            base = base_location
        elif not base_address.strip():
            raise CalculationInputError("Please enter a base location")
        else:
            base = await geocoder.geocode(base_address)
        result = await evaluate_route(base, stops, geocoder, router, self.rule)
        return base, result

    def _describe(self, cause: Optional[Exception], message: str) -> str:
        if isinstance(cause, LocationNotFound):
            logger.info("Location not found: %s", cause.address)
            return str(cause)
        if isinstance(cause, ProviderUnavailable):
            fault_logger.error(
                "%s failure in session %s: %s", cause.provider, self.id, cause.reason
            )
            return PROVIDER_ERROR_MESSAGE
        return message

    def _fail(
        self, generation: int, message: str, failed_stop: Optional[int] = None
    ) -> CalculationOutcome:
        if generation != self._generation:
            return CalculationOutcome(
                generation, error=message, failed_stop=failed_stop, applied=False
            )
        self.error = message
        self.failed_stop = failed_stop
        self.transition_to(CalculationStatus.FAILED)
        return CalculationOutcome(generation, error=message, failed_stop=failed_stop)

    def _write_back(self, base_address: str, base: GeoPoint, result: RouteResult) -> None:
        """Keep freshly geocoded locations on stops the user has not edited since."""
        if self.base_address == base_address:
            self.base_location = base
        current = {stop.id: stop for stop in self.stops}
        for stop in result.stops:
            live = current.get(stop.id)
            if live is not None and live.address == stop.address and stop.location:
                self.stops.update_location(stop.id, stop.location)

    # ── Restoring ─────────────────────────────────────────────────

    def _show(self, result: RouteResult) -> None:
        self._generation += 1
        self.set_base_location(result.base_location)
        self.stops.replace(result.stops)
        self.result = result
        self.error = None
        self.failed_stop = None
        self.transition_to(CalculationStatus.SUCCEEDED)

    async def restore(
        self, params: Mapping[str, str], router: Optional[RouteProvider] = None
    ) -> RouteResult:
        """Load a shared link; route metrics are re-fetched for display when possible."""
        result = decode_query(params, self.entitled, self.rule)
        if router is not None:
            metrics = await router.route_distance(
                result.base_location, [s.location for s in result.stops]
            )
            result = with_route_metrics(result, metrics, self.rule)
        self._show(result)
        return result

    async def load_recent(self, record: SearchRecord, router: RouteProvider) -> RouteResult:
        """Re-evaluate a saved search against a fresh route."""
        stops = record.to_stops()
        metrics = await router.route_distance(record.base_location, list(record.stops))
        result = evaluate_distances(record.base_location, stops, metrics, self.rule)
        if not self.entitled and len(stops) > 1:
            result = replace(result, view_only=True)
        self._show(result)
        return result


class SessionNotFound(Exception):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class SessionRegistry:
    """
    Independent sessions keyed by id.

    Sessions untouched for ``ttl_seconds`` are evicted: lazily on lookup and
    in a sweep on every ``create``.
    """

    def __init__(
        self,
        rule: ComplianceRule = DEFAULT_RULE,
        timeout_seconds: float = 90.0,
        ttl_seconds: float = 4 * 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rule = rule
        self.timeout_seconds = timeout_seconds
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, CalculationSession] = {}
        self._last_used: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _expired(self, session_id: str, now: float) -> bool:
        return now - self._last_used[session_id] > self.ttl_seconds

    def prune(self) -> int:
        """Drop idle sessions; returns how many were evicted."""
        now = self._clock()
        stale = [sid for sid in self._sessions if self._expired(sid, now)]
        for sid in stale:
            self.discard(sid)
        if stale:
            logger.info("Evicted %d idle session(s)", len(stale))
        return len(stale)

    def create(self, entitled: bool = False) -> CalculationSession:
        self.prune()
        session = CalculationSession(
            entitled=entitled, rule=self.rule, timeout_seconds=self.timeout_seconds
        )
        self._sessions[session.id] = session
        self._last_used[session.id] = self._clock()
        return session

    def get(self, session_id: str) -> CalculationSession:
        now = self._clock()
        session = self._sessions.get(session_id)
        if session is None or self._expired(session_id, now):
            self.discard(session_id)
            raise SessionNotFound(session_id)
        self._last_used[session_id] = now
        return session

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._last_used.pop(session_id, None)
