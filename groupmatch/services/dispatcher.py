# groupmatch/services/dispatcher.py
"""
Event-driven recompute scheduling for group characteristic profiles.

Producers (quiz submission, group join/leave/create) call publish() and return
immediately; a bounded worker pool runs ProfileAggregator.recompute.

Coalescing: at most one job per group is queued or running. An event for a
group that already has a job only marks the group dirty; the job re-runs
until the flag stays clear, so every event is followed by a recompute that
reads state at least as new as the event.
"""
import logging
import threading
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from typing import Dict, List, Optional, Set

from sqlalchemy.orm import sessionmaker

from groupmatch.domain.errors import DispatcherClosedError, StaleReferenceError
from groupmatch.infrastructure.repositories.group_repo import GroupRepo
from groupmatch.services.aggregator import ProfileAggregator
from groupmatch.services.events import Event, GroupCreated, MembershipChanged, ProfileUpdated

logger = logging.getLogger(__name__)


class RecomputeDispatcher:
    def __init__(self, aggregator: ProfileAggregator, session_factory: sessionmaker, max_workers: int = 4):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.aggregator = aggregator
        self.session_factory = session_factory
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="recompute")
        self._lock = threading.Lock()
        self._scheduled: Set[int] = set()
        self._dirty: Set[int] = set()
        self._futures: Set[Future] = set()
        self._closed = False
        self._executed: Counter = Counter()
        self._coalesced: Counter = Counter()

    # ----------------------------
    # Producers
    # ----------------------------

    def publish(self, event: Event) -> List[int]:
        """
        Route an event to recompute jobs. Returns the ids of the groups that
        were scheduled or marked dirty.
        """
        if isinstance(event, ProfileUpdated):
            with self.session_factory() as db:
                group_ids = GroupRepo(db).group_ids_for_user(event.user_id)
            self._schedule_many(group_ids)
            logger.info(f"Profile of user {event.user_id} updated, fanned out to {len(group_ids)} groups")
            return group_ids

        # GroupCreated: the profile was already seeded in the creating transaction
        if isinstance(event, (GroupCreated, MembershipChanged)):
            self._schedule_many([event.group_id])
            return [event.group_id]

        raise TypeError(f"Unsupported event: {event!r}")

    def on_profile_updated(self, user_id: int) -> List[int]:
        return self.publish(ProfileUpdated(user_id))

    def on_group_created(self, group_id: int, creator_id: int) -> List[int]:
        return self.publish(GroupCreated(group_id, creator_id))

    def on_membership_changed(self, group_id: int, user_id: Optional[int] = None, joined: bool = True) -> List[int]:
        return self.publish(MembershipChanged(group_id, user_id, joined))

    # ----------------------------
    # Scheduling
    # ----------------------------

    def _schedule_many(self, group_ids: List[int]) -> None:
        """Schedule every group or none of them: one lock hold covers the closed check."""
        submitted = []
        with self._lock:
            if self._closed:
                raise DispatcherClosedError(f"Dispatcher is shutting down, rejecting groups {group_ids}")
            for group_id in group_ids:
                if group_id in self._scheduled:
                    self._dirty.add(group_id)
                    self._coalesced[group_id] += 1
                    continue
                self._scheduled.add(group_id)
                future = self._executor.submit(self._run, group_id)
                self._futures.add(future)
                submitted.append(future)
        for future in submitted:
            future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    def _run(self, group_id: int) -> None:
        while True:
            with self._lock:
                self._dirty.discard(group_id)
            self._execute(group_id)
            with self._lock:
                if group_id not in self._dirty:
                    self._scheduled.discard(group_id)
                    return

    def _execute(self, group_id: int) -> None:
        try:
            self.aggregator.recompute(group_id)
        except StaleReferenceError as e:
            logger.warning(f"Dropping stale recompute for group {group_id}: {e}")
        except Exception:
            logger.exception(f"Recompute failed for group {group_id}")
        finally:
            with self._lock:
                self._executed[group_id] += 1

    # ----------------------------
    # Lifecycle
    # ----------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def is_pending(self, group_id: int) -> bool:
        with self._lock:
            return group_id in self._scheduled

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no job is queued or running. False on timeout."""
        while True:
            with self._lock:
                pending = set(self._futures)
            if not pending:
                return True
            _, not_done = wait_futures(pending, timeout=timeout)
            if not_done:
                return False

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """
        Stop accepting events and finish queued and in-flight jobs.
        Returns False if draining did not finish within ``timeout``.
        """
        with self._lock:
            self._closed = True
        drained = self.wait_idle(timeout) if wait else False
        self._executor.shutdown(wait=wait and drained)
        logger.info(f"Recompute dispatcher shut down (drained={drained})")
        return drained

    def stats(self) -> Dict[str, Dict[int, int]]:
        with self._lock:
            return {"executed": dict(self._executed), "coalesced": dict(self._coalesced)}
