"""
Model registry and active model selection.

Maps model ids to adapters and keeps track of which model serves
requests that do not ask for one explicitly.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from ..sdk.gemini_client import GeminiAdapter
from ..sdk.types import ModelAdapter
from .catalog import DEFAULT_MODEL_ID, ModelInfo, list_catalog

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[ModelInfo], ModelAdapter]

ADAPTER_FACTORIES: Dict[str, AdapterFactory] = {
    "google": GeminiAdapter,
}


class ModelNotRegisteredError(ValueError):
    """Raised when a model id has no registered adapter."""

    def __init__(self, model_id: str):
        super().__init__(f"AI model {model_id} is not registered.")
        self.model_id = model_id


class SettingsStore(Protocol):
    """Where the active model selection is persisted.

    Any repository from lingo_ledger.storage satisfies this.
    """

    def get_active_model_id(self) -> Optional[str]:
        """The stored selection, if any."""

    def set_active_model_id(self, model_id: str) -> None:
        """Persist a new selection."""


@dataclass(frozen=True)
class ModelListing:
    """A catalog entry annotated with whether it is currently active."""
    info: ModelInfo
    is_active: bool


class ModelRegistry:
    """Registry of model adapters backed by a settings store."""

    def __init__(
        self,
        settings: SettingsStore,
        models: Optional[Iterable[ModelInfo]] = None,
        default_model_id: str = DEFAULT_MODEL_ID,
        factories: Optional[Dict[str, AdapterFactory]] = None
    ):
        """Build one adapter per model.

        Args:
            settings: Store holding the active model selection
            models: Models to register (defaults to the full catalog)
            default_model_id: Fallback when no valid selection is stored
            factories: Adapter factory per provider

        Raises:
            ValueError: If a model's provider has no factory
        """
        self.settings = settings
        self.default_model_id = default_model_id
        self._factories = factories if factories is not None else ADAPTER_FACTORIES
        self._models: Dict[str, ModelInfo] = {}
        self._adapters: Dict[str, ModelAdapter] = {}

        for info in (models if models is not None else list_catalog()):
            self.register(info)

    def register(self, info: ModelInfo) -> ModelAdapter:
        """Create and register the adapter for a model."""
        factory = self._factories.get(info.provider)
        if factory is None:
            raise ValueError(f"Provider {info.provider} is not yet supported.")
        adapter = factory(info)
        self._models[info.id] = info
        self._adapters[info.id] = adapter
        return adapter

    def unregister(self, model_id: str) -> None:
        """Remove a model; a stored selection of it falls back to the default."""
        self._models.pop(model_id, None)
        self._adapters.pop(model_id, None)

    def get_active_model_id(self) -> str:
        stored = self.settings.get_active_model_id()
        if stored is not None and stored in self._adapters:
            return stored
        return self.default_model_id

    def get_active_adapter(self) -> ModelAdapter:
        return self.get_adapter_by_id(self.get_active_model_id())

    def get_adapter_by_id(self, model_id: str) -> ModelAdapter:
        adapter = self._adapters.get(model_id)
        if adapter is None:
            raise ModelNotRegisteredError(model_id)
        return adapter

    def resolve_adapter(self, model_id: Optional[str] = None) -> ModelAdapter:
        """The requested model's adapter, or the active one when none is given."""
        if model_id:
            return self.get_adapter_by_id(model_id)
        return self.get_active_adapter()

    def set_active_model(self, model_id: str) -> None:
        """Select the model used by every request that does not pick one.

        Raises:
            ModelNotRegisteredError: If the model is unknown; nothing changes
        """
        if model_id not in self._adapters:
            raise ModelNotRegisteredError(model_id)
        self.settings.set_active_model_id(model_id)
        logger.info("Active AI model set to %s", model_id)

    def list_models(self) -> List[ModelListing]:
        active_id = self.get_active_model_id()
        return [
            ModelListing(info=info, is_active=info.id == active_id)
            for info in self._models.values()
        ]

    def get_model_info(self, model_id: str) -> ModelInfo:
        info = self._models.get(model_id)
        if info is None:
            raise ModelNotRegisteredError(model_id)
        return info
