"""Plan engine - diff desired resources against recorded state."""

from typing import Dict, List, Sequence
from ..graph.dependency_graph import DependencyGraph
from ..model.resources import REPLACEMENT_OUTPUTS, ResourceSpec
from ..model.template import resolve_attributes
from ..state.models import ResourceState, ResourceStatus
from ..utils.errors import UnresolvedReferenceError
from ..utils.logging import get_logger
from .models import ActionType, AttributeChange, Plan, PlannedAction

logger = get_logger("planning.engine")

_MISSING = object()


def diff(specs: Sequence[ResourceSpec], current_states: Sequence[ResourceState], destroy: bool = False) -> Plan:
    """
    Compute the ordered actions that bring recorded state to the declared resources.

    Args:
        specs: Declared resources in topological order
        current_states: Recorded resource states
        destroy: Ignore declarations and delete everything

    Returns:
        Plan with one action per declared or recorded resource

    Raises:
        UnresolvedReferenceError: If a reference target has neither created
            state nor an earlier action in the plan
    """
    if destroy:
        actions = _delete_actions(list(current_states), list(current_states), specs)
        plan = Plan(actions=actions, destroy=True)
        logger.info(f"Destroy plan: {plan.summary()}")
        return plan

    states_by_address = {state.address: state for state in current_states}
    declared = {spec.address for spec in specs}
    orphans = [state for state in current_states if state.address not in declared]

    actions = _delete_actions(orphans, list(current_states), specs)
    planned: Dict[str, PlannedAction] = {}

    for spec in specs:
        for dep in spec.dependencies:
            if dep not in planned:
                raise UnresolvedReferenceError(
                    f"{spec.address} depends on {dep}, which is not planned before it"
                )

        waits_for = list(spec.dependencies)
        state = states_by_address.get(spec.address)

        if state is None or not state.provider_id:
            action = PlannedAction.create(spec, state=state, waits_for=waits_for)
        else:
            changes = _attribute_changes(spec, state, states_by_address, _replaced_slots(spec, planned))
            if changes or state.status != ResourceStatus.CREATED:
                action = PlannedAction.update(spec, state, changes, waits_for=waits_for)
            else:
                action = PlannedAction.noop(spec, state, waits_for=waits_for)

        planned[spec.address] = action
        actions.append(action)

    plan = Plan(actions=actions)
    logger.info(f"Plan: {plan.summary()}")
    return plan


def _replaced_slots(spec: ResourceSpec, planned: Dict[str, PlannedAction]) -> List[str]:
    """Slots bound to outputs that change because their target is being replaced."""
    slots = []
    for ref in spec.references:
        target = planned.get(ref.target_address)
        if target is None:
            continue
        if target.type == ActionType.CREATE or target.replace:
            if ref.output in REPLACEMENT_OUTPUTS.get(ref.target_kind, ()):
                slots.append(ref.slot)
    return slots


def _attribute_changes(spec: ResourceSpec, state: ResourceState, states_by_address: Dict[str, ResourceState],
                       replaced_slots: Sequence[str] = ()) -> Dict[str, AttributeChange]:
    resolved, unresolved = resolve_attributes(spec, states_by_address)
    unresolved = list(unresolved) + [slot for slot in replaced_slots if slot not in unresolved]
    changes: Dict[str, AttributeChange] = {}

    for key, desired in resolved.items():
        if key in unresolved:
            continue
        recorded = state.attributes.get(key, _MISSING)
        if recorded is _MISSING or recorded != desired:
            changes[key] = AttributeChange(
                before=None if recorded is _MISSING else recorded,
                after=desired,
            )

    # Bound to a resource that does not exist yet: the value changes once it is created.
    for slot in unresolved:
        changes[slot] = AttributeChange(
            before=state.attributes.get(slot),
            after=None,
            known_after_apply=True,
        )
    return changes


def _delete_actions(targets: List[ResourceState], all_states: List[ResourceState], specs: Sequence[ResourceSpec]) -> List[PlannedAction]:
    """Delete actions for targets, dependents first; each waits for its dependents' deletes."""
    if not targets:
        return []

    spec_by_address = {spec.address: spec for spec in specs}
    position = {spec.address: index for index, spec in enumerate(specs)}
    known = {state.address for state in all_states}
    ordered_states = sorted(all_states, key=lambda s: position.get(s.address, len(position)))

    graph = DependencyGraph()
    for state in ordered_states:
        deps = list(state.dependencies)
        spec = spec_by_address.get(state.address)
        if spec is not None:
            deps.extend(d for d in spec.dependencies if d not in deps)
        graph.add_resource(state.address, [d for d in deps if d in known])

    target_addresses = {state.address for state in targets}
    by_address = {state.address: state for state in targets}
    actions = []
    for address in graph.reverse_order():
        if address not in target_addresses:
            continue
        waits_for = [
            dependent for dependent in graph.graph.predecessors(address)
            if dependent in target_addresses
        ]
        actions.append(PlannedAction.delete(by_address[address], waits_for=sorted(waits_for)))
    return actions
