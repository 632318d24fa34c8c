from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pos_session.application.activity_detector import ActivityDetector
from pos_session.application.dtos.coordinator_state_dto import CoordinatorState
from pos_session.application.dtos.session_timing_dto import SessionTiming
from pos_session.application.observer_registry import ObserverRegistry
from pos_session.application.ports.activity_source_port import ActivitySourcePort
from pos_session.application.ports.auth_provider_port import AuthProviderPort
from pos_session.application.ports.clock_port import Clock, SystemClock
from pos_session.application.ports.navigator_port import NavigatorPort
from pos_session.application.ports.notification_port import StateObserver
from pos_session.application.ports.scheduler_port import SchedulerPort, TimerHandle
from pos_session.application.ports.session_store_port import SessionStorePort
from pos_session.application.use_cases.end_user_session import EndUserSessionUseCase
from pos_session.application.use_cases.ensure_user_session import EnsureUserSessionUseCase
from pos_session.application.use_cases.extend_user_session import ExtendUserSessionUseCase
from pos_session.domain.entities.identity import Credential, Identity
from pos_session.domain.entities.session import Session, SessionMetadata
from pos_session.domain.errors import AuthUnavailable, IdentityMismatch
from pos_session.domain.policies.extension_policy import ExtensionPolicy
from pos_session.domain.policies.session_clock import SessionClock, SessionHealth
from pos_session.infrastructure import metrics
from pos_session.infrastructure.logging.logger import get_logger, log_event

logger = get_logger(__name__)


class CoordinatorPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    NEAR_EXPIRY_PROMPTED = "near_expiry_prompted"
    LOGGED_OUT = "logged_out"


class SessionCoordinator:
    """Owns the client-side session lifecycle for one running process.

    The composition root builds exactly one instance and hands it to every UI
    surface. UI code subscribes with add_observer() and only calls extend()
    and logout(); the poll timer, the warning, grace and notice timers, and the activity
    listeners belong to the coordinator, so any number of mounts share them.

    Every async path captures ``_generation`` before awaiting and drops its
    result when the generation moved on (re-initialize, logout, teardown),
    so a slow store call can never resurrect a finished session.
    """

    def __init__(
        self,
        *,
        store: SessionStorePort,
        auth: AuthProviderPort,
        navigator: NavigatorPort,
        scheduler: SchedulerPort,
        timing: SessionTiming | None = None,
        activity_sources: Sequence[ActivitySourcePort] = (),
        clock: Clock | None = None,
        registry: ObserverRegistry | None = None,
        metadata: SessionMetadata | None = None,
    ) -> None:
        self._timing = (timing or SessionTiming()).validate()
        self._auth = auth
        self._navigator = navigator
        self._scheduler = scheduler
        self._clock = clock or SystemClock()
        self._metadata = metadata
        self._session_clock = SessionClock(self._timing.near_expiry)
        self._policy = ExtensionPolicy(self._timing.extension_roles, self._timing.restricted_roles)
        self._ensure = EnsureUserSessionUseCase(store, lifetime=self._timing.lifetime, clock=self._clock)
        self._extend = ExtendUserSessionUseCase(store, self._policy, lifetime=self._timing.lifetime)
        self._end = EndUserSessionUseCase(store, auth)
        self._observers = registry or ObserverRegistry()
        self._detector = ActivityDetector(
            activity_sources,
            scheduler,
            window=self._timing.activity_debounce_seconds,
            on_activity=self._on_activity,
            is_enabled=self._has_live_session,
        )
        self._identity: Identity | None = None
        self._phase = CoordinatorPhase.UNINITIALIZED
        self._state = CoordinatorState()
        self._generation = 0
        self._poll: TimerHandle | None = None
        self._grace: TimerHandle | None = None
        self._grace_deadline: datetime | None = None
        self._warning: TimerHandle | None = None
        self._notice: TimerHandle | None = None

    # ---------- read side ----------
    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def phase(self) -> CoordinatorPhase:
        return self._phase

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def timing(self) -> SessionTiming:
        return self._timing

    @property
    def activity(self) -> ActivityDetector:
        return self._detector

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    # ---------- lifecycle ----------
    def initialize(self, identity: Identity) -> None:
        """Bind to `identity` and start polling. Re-binding the same live identity is a no-op."""
        if identity == self._identity and self._phase is not CoordinatorPhase.LOGGED_OUT:
            return
        previous = self._identity
        self._shutdown_timers()
        self._generation += 1
        self._identity = identity
        self._phase = CoordinatorPhase.ACTIVE
        self._poll = self._scheduler.call_every(
            self._timing.poll_interval_seconds, self.check_expiration, first_delay=0.0
        )
        self._detector.attach()
        self._log(
            "initialized",
            user_id=identity.user_id,
            role=identity.role,
            previous_user_id=previous.user_id if previous else None,
        )
        self._replace_state(CoordinatorState())

    def teardown(self) -> None:
        """Stop everything and forget observers; safe to call repeatedly."""
        was_bound = self._identity is not None
        self._shutdown_timers()
        self._generation += 1
        self._observers.clear()
        self._identity = None
        self._phase = CoordinatorPhase.UNINITIALIZED
        self._state = CoordinatorState()
        if was_bound:
            self._log("torn_down")

    # ---------- observers ----------
    def add_observer(self, observer: StateObserver) -> Callable[[], None]:
        """Subscribe and immediately deliver the current snapshot."""
        unsubscribe = self._observers.subscribe(observer)
        observer(self._state)
        return unsubscribe

    def remove_observer(self, observer: StateObserver) -> None:
        self._observers.unsubscribe(observer)

    # ---------- poll cycle ----------
    async def check_expiration(self) -> CoordinatorState:
        identity = self._identity
        if identity is None or self._phase is CoordinatorPhase.LOGGED_OUT:
            return self._state
        if self._on_auth_route():
            self._log("poll_skipped", route=self._navigator.current_route())
            return self._state
        metrics.poll_ticks.inc()
        generation = self._generation
        try:
            await self._check(identity, generation)
        except Exception:
            logger.exception("expiration check failed for user %s", identity.user_id)
            if self._is_current(generation):
                await self._force_logout("check_failed")
        return self._state

    async def _check(self, identity: Identity, generation: int) -> None:
        credential = await self._current_credential()
        if not self._is_current(generation):
            return
        if credential is None or credential.user_id != identity.user_id:
            self._lose_identity(identity, credential)
            return

        bound = self._state.session_data
        result = await self._ensure.execute(identity, self._metadata, create=bound is None)
        if not self._is_current(generation):
            return
        if result.status == "ERROR":
            await self._force_logout("create_failed")
            return
        if result.status == "NOT_FOUND":
            # the bound row expired or was invalidated elsewhere
            await self._force_logout("expired", bound)
            return
        if result.status == "UNAVAILABLE":
            session = self._state.session_data
        else:
            session = self._fresher(result.session)
        if session is None:
            await self._force_logout("check_failed")
            return

        now = self._clock.now()
        health = self._session_clock.evaluate(session, now)
        remaining = self._session_clock.minutes_remaining(now, session.expires_at)
        self._log(
            "checked",
            user_id=identity.user_id,
            session_id=session.id,
            health=health.value,
            minutes_remaining=round(remaining, 2),
        )
        if health is SessionHealth.EXPIRED:
            await self._force_logout("expired", session)
            return

        prompt = health is SessionHealth.NEAR_EXPIRY and self._policy.can_self_extend(identity.role)
        if prompt:
            if self._grace is None:
                first_prompt = self._phase is not CoordinatorPhase.NEAR_EXPIRY_PROMPTED
                delay = self._timing.prompt_grace_seconds if first_prompt else max(remaining * 60.0, 0.001)
                self._grace = self._scheduler.call_later(delay, self._on_grace_elapsed)
                self._grace_deadline = now + timedelta(seconds=delay)
            self._phase = CoordinatorPhase.NEAR_EXPIRY_PROMPTED
        else:
            self._cancel_grace()
            self._phase = CoordinatorPhase.ACTIVE
        self._arm_warning(session, now)
        self._apply(
            session_data=session,
            show_extension_prompt=prompt,
            prompt_deadline=self._grace_deadline if prompt else None,
            show_logout_message=False,
        )

    async def _on_warning(self) -> None:
        self._warning = None
        await self.check_expiration()

    async def _on_grace_elapsed(self) -> None:
        self._grace = None
        self._grace_deadline = None
        if self._phase is not CoordinatorPhase.NEAR_EXPIRY_PROMPTED:
            return
        self._log("prompt_grace_elapsed", user_id=self._identity.user_id if self._identity else None)
        await self.check_expiration()

    # ---------- user actions ----------
    async def extend(self) -> CoordinatorState:
        identity = self._identity
        if identity is None or self._phase is CoordinatorPhase.LOGGED_OUT:
            return self._state
        bound = self._state.session_data
        if bound is not None and self._session_clock.is_expired(bound, self._clock.now()):
            # lapsed between polls; an expired session is never renewed
            await self._force_logout("expired", bound)
            return self._state
        generation = self._generation
        result = await self._extend.execute(identity, bound)
        if not self._is_current(generation):
            return self._state
        if result.status == "EXTENDED":
            self._cancel_grace()
            self._phase = CoordinatorPhase.ACTIVE
            session = self._fresher(result.session)
            self._arm_warning(session, self._clock.now())
            self._apply(
                session_data=session,
                show_extension_prompt=False,
                prompt_deadline=None,
                demo_message=None,
            )
        elif result.status == "EXPIRED":
            await self._force_logout("expired", bound)
        else:
            self._apply(demo_message=result.message)
        return self._state

    async def logout(self) -> CoordinatorState:
        if self._identity is None or self._phase is CoordinatorPhase.LOGGED_OUT:
            return self._state
        self._log("logout", user_id=self._identity.user_id)
        await self._end_session(self._state.session_data, redirect=self._timing.login_route)
        return self._state

    def dismiss_message(self) -> None:
        if self._state.demo_message is not None:
            self._apply(demo_message=None)

    async def _on_activity(self) -> None:
        identity = self._identity
        if identity is None or not self._policy.can_self_extend(identity.role):
            return
        if self._on_auth_route():
            return
        await self.extend()

    # ---------- termination ----------
    async def _force_logout(self, reason: str, session: Session | None = None) -> None:
        if self._phase is CoordinatorPhase.LOGGED_OUT:
            return
        metrics.forced_logouts.labels(reason=reason).inc()
        self._log(
            "forced_logout",
            reason=reason,
            user_id=self._identity.user_id if self._identity else None,
        )
        await self._end_session(
            session or self._state.session_data, redirect=self._timing.expired_login_route
        )

    async def _end_session(self, session: Session | None, *, redirect: str) -> None:
        self._phase = CoordinatorPhase.LOGGED_OUT
        self._shutdown_timers()
        self._generation += 1
        generation = self._generation
        await self._end.execute(session)
        if not self._is_current(generation):
            return
        self._replace_state(CoordinatorState(show_logout_message=True))
        self._notice = self._scheduler.call_later(
            self._timing.logout_message_seconds,
            lambda: self._finish_logout(generation, redirect),
        )

    def _finish_logout(self, generation: int, redirect: str) -> None:
        if not self._is_current(generation):
            return
        self._notice = None
        self._apply(show_logout_message=False)
        self._redirect_to_login(redirect)

    def _lose_identity(self, identity: Identity, credential: Credential | None) -> None:
        metrics.forced_logouts.labels(reason="identity_mismatch").inc()
        seen = credential.user_id if credential else None
        self._log(
            "identity_lost",
            user_id=identity.user_id,
            error=str(IdentityMismatch(f"expected {identity.user_id}, credential {seen or 'absent'}")),
        )
        self._phase = CoordinatorPhase.LOGGED_OUT
        self._shutdown_timers()
        self._generation += 1
        self._replace_state(CoordinatorState())
        self._redirect_to_login(self._timing.login_route)

    # ---------- helpers ----------
    async def _current_credential(self) -> Credential | None:
        try:
            return await self._auth.get_current_credential()
        except AuthUnavailable as e:
            self._log("credential_unavailable", error=str(e))
            return None

    def _fresher(self, fetched: Session | None) -> Session | None:
        current = self._state.session_data
        if fetched is None:
            return current
        if current is None or current.id != fetched.id:
            return fetched
        return current if current.is_fresher_than(fetched) else fetched

    def _has_live_session(self) -> bool:
        return (
            self._phase in (CoordinatorPhase.ACTIVE, CoordinatorPhase.NEAR_EXPIRY_PROMPTED)
            and self._state.session_data is not None
        )

    def _on_auth_route(self) -> bool:
        return self._navigator.current_route().startswith(self._timing.auth_route_prefix)

    def _redirect_to_login(self, route: str) -> None:
        if self._on_auth_route():
            return
        self._navigator.navigate(route)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _cancel_grace(self) -> None:
        if self._grace is not None:
            self._grace.cancel()
            self._grace = None
        self._grace_deadline = None

    def _arm_warning(self, session: Session | None, now: datetime) -> None:
        """One-shot check at the start of the near-expiry window, whatever the poll interval."""
        if self._warning is not None:
            self._warning.cancel()
            self._warning = None
        if session is None:
            return
        delay = (session.expires_at - self._timing.near_expiry - now).total_seconds()
        if delay > 0:
            self._warning = self._scheduler.call_later(delay, self._on_warning)

    def _shutdown_timers(self) -> None:
        for handle in (self._poll, self._grace, self._warning, self._notice):
            if handle is not None:
                handle.cancel()
        self._poll = self._grace = self._warning = self._notice = None
        self._grace_deadline = None
        self._detector.detach()

    def _apply(self, **changes: Any) -> None:
        self._replace_state(replace(self._state, **changes))

    def _replace_state(self, state: CoordinatorState) -> None:
        self._state = state
        self._observers.publish(state)

    def _log(self, event: str, **fields: object) -> None:
        log_event(logger, "SessionCoordinator", event, **fields)
