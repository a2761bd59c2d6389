"""Workspace - one invocation's settings, template, state and provider."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
from .config import Settings, load_settings
from .execution.executor import Executor
from .execution.models import ApplyReport
from .execution.refresh import refresh as refresh_state
from .graph.dependency_graph import build
from .model.template import ResourceModel, load_template
from .planning.engine import diff
from .planning.models import Plan
from .presentation.outputs import KeyFileSink, render
from .provider import create_provider
from .provider.base import ProviderClient
from .state.models import ResourceState
from .state.store import StateStore
from .utils.logging import get_logger

logger = get_logger("workspace")


@dataclass
class Workspace:
    """Wires the components together in the documented control flow."""
    settings: Settings
    model: ResourceModel
    store: StateStore
    provider: ProviderClient
    sink: KeyFileSink
    executor: Optional[Executor] = field(default=None, repr=False)

    @classmethod
    def open(cls, config_path: Optional[str] = None, provider: Optional[ProviderClient] = None) -> "Workspace":
        """
        Load settings, validate the template and load state.

        Fails before any mutation when configuration, template or state is invalid.
        """
        settings = load_settings(config_path)
        return cls.from_settings(settings, provider=provider)

    @classmethod
    def from_settings(cls, settings: Settings, provider: Optional[ProviderClient] = None) -> "Workspace":
        model = load_template(settings.template)
        store = StateStore(settings.engine.state_path)
        store.load()
        return cls(
            settings=settings,
            model=model,
            store=store,
            provider=provider or create_provider(settings),
            sink=KeyFileSink(settings.engine.key_dir),
        )

    def plan(self, destroy: bool = False) -> Plan:
        """Order the template and diff it against current state."""
        ordered = build(self.model.specs)
        return diff(ordered, self.store.states(), destroy=destroy)

    def apply(self, plan: Plan) -> ApplyReport:
        """Execute a plan, committing to state after every action."""
        self.executor = Executor(
            store=self.store,
            provider=self.provider,
            sink=self.sink,
            max_concurrency=self.settings.engine.max_concurrency,
            call_timeout=self.settings.engine.call_timeout,
        )
        return self.executor.apply(plan)

    def cancel(self) -> None:
        if self.executor is not None:
            self.executor.cancel()

    def refresh(self) -> List[str]:
        return refresh_state(self.store, self.provider)

    def states(self) -> List[ResourceState]:
        return self.store.states()

    def outputs(self) -> Dict[str, str]:
        return render(self.store.states(), key_dir=self.settings.engine.key_dir)
