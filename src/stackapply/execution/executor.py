"""Executor - perform plan actions against the provider and commit state."""

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Dict, List, Optional, Tuple
from ..model.resources import ResourceKind
from ..model.template import resolve_attributes
from ..planning.models import ActionType, Plan, PlannedAction
from ..presentation.outputs import KeyFileSink
from ..provider.base import ProviderClient
from ..secrets.keygen import generate_key_pair
from ..state.models import ResourceState, ResourceStatus
from ..state.store import StateStore
from ..utils.errors import (
    ApplyCanceledError,
    DependencyFailedError,
    ProviderTimeoutError,
    ResourceNotFoundError,
    StackApplyError,
    UnresolvedReferenceError,
)
from ..utils.logging import get_logger
from .models import ActionOutcome, ApplyReport, Failure, Result, Success

logger = get_logger("execution.executor")

# Never written to the State Store.
UNPERSISTED_ATTRIBUTES = ("public_key", "private_key")

POLL_INTERVAL = 0.25


class Executor:
    """
    Task-graph executor over a bounded worker pool.

    Provider calls run on worker threads. Everything that touches the State
    Store runs on the calling thread: an action's result is committed before
    any action waiting for it is scheduled.
    """

    def __init__(
        self,
        store: StateStore,
        provider: ProviderClient,
        sink: Optional[KeyFileSink] = None,
        max_concurrency: int = 4,
        call_timeout: float = 600.0,
    ):
        self.store = store
        self.provider = provider
        self.sink = sink or KeyFileSink(".")
        self.max_concurrency = max(1, max_concurrency)
        self.call_timeout = call_timeout
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Stop scheduling new actions; in-flight provider calls finish and are committed."""
        if not self._cancel.is_set():
            logger.warning("Cancellation requested: finishing in-flight actions only")
        self._cancel.set()

    @property
    def canceled(self) -> bool:
        return self._cancel.is_set()

    def apply(self, plan: Plan) -> ApplyReport:
        """
        Execute a plan.

        Args:
            plan: Plan from the plan engine

        Returns:
            ApplyReport with one outcome per action, in plan order
        """
        actions = {action.address: action for action in plan.actions}
        pending = [action.address for action in plan.actions]
        results: Dict[str, Result] = {}
        in_flight: Dict[Future, Tuple[PlannedAction, float]] = {}
        abandoned: Dict[Future, PlannedAction] = {}

        logger.info(f"Applying plan: {plan.summary()}")

        with ThreadPoolExecutor(max_workers=self.max_concurrency, thread_name_prefix="stackapply") as pool:
            while pending or in_flight:
                # Calls abandoned at their deadline still occupy a worker until they return.
                stalled = [future for future in abandoned if not future.done()]

                if self._cancel.is_set():
                    for address in pending:
                        results[address] = Failure(ApplyCanceledError(f"{address} not started: apply canceled"))
                    pending = []
                else:
                    pending = self._schedule(pending, actions, results, in_flight, len(stalled), pool)

                if not in_flight and not stalled:
                    for address in pending:
                        results[address] = self._fail(actions[address], UnresolvedReferenceError(
                            f"{address} waits for actions that never ran"
                        ))
                    pending = []
                    continue

                timeout = POLL_INTERVAL
                if in_flight:
                    next_deadline = min(deadline for _, deadline in in_flight.values())
                    timeout = min(max(0.0, next_deadline - time.monotonic()), POLL_INTERVAL)
                done, _ = wait(list(in_flight) + stalled, timeout=timeout, return_when=FIRST_COMPLETED)

                for future in done:
                    if future in in_flight:
                        action, _ = in_flight.pop(future)
                        results[action.address] = self._complete(action, future)

                now = time.monotonic()
                for future, (action, deadline) in list(in_flight.items()):
                    if now >= deadline:
                        del in_flight[future]
                        abandoned[future] = action
                        results[action.address] = self._fail(action, ProviderTimeoutError(
                            f"{action.address}: provider call exceeded {self.call_timeout}s",
                            address=action.address,
                        ))

        # The pool has drained, so every abandoned call has finished by now.
        for future, action in abandoned.items():
            self._reconcile_late(action, future)

        report = ApplyReport(
            outcomes=[ActionOutcome(action=a, result=results[a.address]) for a in plan.actions],
            canceled=self._cancel.is_set(),
        )
        if report.ok:
            logger.info(f"Apply complete: {report.summary()}")
        else:
            logger.error(f"Apply finished with failures: {', '.join(report.failed_addresses)}")
        return report

    def _schedule(self, pending: List[str], actions: Dict[str, PlannedAction], results: Dict[str, Result],
                  in_flight: Dict[Future, Tuple[PlannedAction, float]], busy: int,
                  pool: ThreadPoolExecutor) -> List[str]:
        """Start every action whose predecessors are done; returns what is still waiting."""
        changed = True
        while changed:
            changed = False
            remaining = []
            for address in pending:
                action = actions[address]
                waits = [d for d in action.waits_for if d in actions]
                failed = [d for d in waits if d in results and not results[d].ok]
                if failed:
                    logger.warning(f"Skipping {address}: blocked by failed {', '.join(failed)}")
                    results[address] = Failure(DependencyFailedError(address, failed))
                    changed = True
                    continue

                if not all(d in results for d in waits):
                    remaining.append(address)
                    continue

                if action.type == ActionType.NOOP:
                    results[address] = Success(action.state.provider_id, dict(action.state.attributes))
                    changed = True
                    continue

                if len(in_flight) + busy >= self.max_concurrency:
                    remaining.append(address)
                    continue

                self._start(action, results, in_flight, pool)
                changed = True
            pending = remaining
        return pending

    def _start(self, action: PlannedAction, results: Dict[str, Result],
               in_flight: Dict[Future, Tuple[PlannedAction, float]], pool: ThreadPoolExecutor) -> None:
        address = action.address

        if action.type == ActionType.DELETE:
            state = self.store.get_by_address(address) or action.state
            if not state.provider_id:
                self.store.remove(state.kind, state.name)
                logger.info(f"Removed {address} from state (never created)")
                results[address] = Success("", {})
                return
            logger.info(f"Deleting {address} ({state.provider_id})")
            future = pool.submit(self._perform_delete, action, state.provider_id)
        else:
            resolved, unresolved = resolve_attributes(action.spec, self.store.as_mapping())
            if unresolved:
                results[address] = self._fail(action, UnresolvedReferenceError(
                    f"{address}: cannot resolve {', '.join(unresolved)}"
                ))
                return
            if action.type == ActionType.CREATE:
                self.store.upsert(self._record(
                    action,
                    provider_id=None,
                    status=ResourceStatus.PENDING,
                    dependencies=action.spec.dependencies,
                ))
            verb = "Replace" if action.replace else action.type.value.capitalize()
            logger.info(f"{verb} {address}")
            future = pool.submit(self._perform, action, resolved)

        in_flight[future] = (action, time.monotonic() + self.call_timeout)

    def _perform(self, action: PlannedAction, resolved: Dict[str, Any]) -> Success:
        """Worker thread: create or update one resource. Touches no shared state."""
        attributes = dict(resolved)
        recorded: Dict[str, Any] = {}
        material = None
        staged = None

        if action.kind == ResourceKind.KEY_PAIR and (action.type == ActionType.CREATE or action.replace):
            material = generate_key_pair(attributes.get("algorithm", "rsa"))
            staged = self.sink.stage(attributes["key_name"], material)
            attributes["public_key"] = material.public_key

        try:
            if action.type == ActionType.CREATE:
                provider_id, outputs = self.provider.create_resource(action.kind, attributes)
            else:
                provider_id, outputs = self.provider.update_resource(
                    action.kind, action.state.provider_id, attributes, replace=action.replace)
        except Exception:
            if staged is not None:
                self.sink.discard(staged)
            raise

        if staged is not None:
            key_file = self.sink.commit(attributes["key_name"], staged)
            recorded = {"fingerprint": material.fingerprint, "key_file": str(key_file)}

        # In-place updates keep recorded outputs the provider does not report again.
        kept = dict(action.state.attributes) if action.type == ActionType.UPDATE and not action.replace else {}
        stored = {**kept, **outputs, **resolved, **recorded}
        for key in UNPERSISTED_ATTRIBUTES:
            stored.pop(key, None)
        return Success(provider_id, stored)

    def _perform_delete(self, action: PlannedAction, provider_id: str) -> Success:
        """Worker thread: delete one resource; already gone counts as deleted."""
        try:
            self.provider.delete_resource(action.kind, provider_id)
        except ResourceNotFoundError:
            logger.warning(f"{action.address} ({provider_id}) was already deleted outside stackapply")
        return Success(provider_id, {})

    def _complete(self, action: PlannedAction, future: Future) -> Result:
        """Commit the outcome of a finished provider call."""
        error = future.exception()
        if error is not None:
            if not isinstance(error, StackApplyError):
                logger.error(f"Unexpected error in {action.address}: {error}", exc_info=error)
            return self._fail(action, error)

        result = future.result()
        self._commit_success(action, result)
        logger.info(f"{action.address}: {action.type.value} complete")
        return result

    def _record(self, action: PlannedAction, **fields: Any) -> ResourceState:
        """New record for the action's resource, carried over from the prior record when there is one."""
        prior = self.store.get_by_address(action.address)
        if prior is None:
            return ResourceState(kind=action.kind, name=action.name, **fields)
        return prior.model_copy(update=fields)

    def _commit_success(self, action: PlannedAction, result: Success) -> None:
        if action.type == ActionType.DELETE:
            self.store.remove(action.kind, action.name)
            return
        self.store.upsert(self._record(
            action,
            provider_id=result.provider_id,
            attributes=result.attributes,
            status=ResourceStatus.CREATED,
            dependencies=action.spec.dependencies,
        ))

    def _fail(self, action: PlannedAction, error: Exception) -> Failure:
        """Record a failed action; deletes leave their record untouched for a retry."""
        logger.error(f"{action.address}: {action.type.value} failed: {error}")

        if action.type == ActionType.CREATE:
            self.store.upsert(self._record(
                action,
                provider_id=None,
                status=ResourceStatus.FAILED,
                dependencies=action.spec.dependencies,
            ))
        elif action.type == ActionType.UPDATE:
            prior = self.store.get_by_address(action.address) or action.state
            self.store.upsert(prior.model_copy(update={"status": ResourceStatus.FAILED}))
        return Failure(error)

    def _reconcile_late(self, action: PlannedAction, future: Future) -> None:
        """A call abandoned at its deadline finished later: record what it actually did."""
        if future.exception() is not None:
            logger.info(f"{action.address}: call abandoned at deadline also failed: {future.exception()}")
            return
        self._commit_success(action, future.result())
        logger.warning(
            f"{action.address}: {action.type.value} completed after its deadline; "
            "state updated but dependent actions were skipped. Run apply again."
        )
