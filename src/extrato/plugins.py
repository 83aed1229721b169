import importlib.metadata
import logging

from extrato.models import DialectInfo
from extrato.registry import DialectRegistry, registry as default_registry

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "extrato.dialects"


class PluginHooks:
    def __init__(self):
        self.dialects: list[DialectInfo] = []

    def add_dialect(self, info: DialectInfo) -> None:
        self.dialects.append(info)


def load_plugins(registry: DialectRegistry | None = None) -> PluginHooks:
    """Discover installed dialect plugins and append them after the built-ins."""
    registry = registry or default_registry
    hooks = PluginHooks()

    eps = importlib.metadata.entry_points(group=ENTRY_POINT_GROUP)
    for ep in eps:
        plugin_module = ep.load()
        if hasattr(plugin_module, "register"):
            plugin_module.register(hooks)
            logger.debug("Loaded dialect plugin %s", ep.name)
        else:
            logger.warning("Plugin %s has no register function, skipping", ep.name)

    for info in hooks.dialects:
        registry.register(info)

    return hooks
