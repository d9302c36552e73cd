import importlib
import logging
import pkgutil
import typing

logger = logging.getLogger(__name__)


class PluginRegistry:
    """Maps the names used in config files to plugin classes.

    There is one registry per plugin base class, e.g. :class:`~acmecore.client.challenge_solver.ChallengeSolver`.
    A plugin ends up in the registry of the first registered base class it derives from.
    """

    PACKAGE = "acmecore"

    _registries: typing.Dict[type, "PluginRegistry"] = {}

    def __init__(self):
        self._plugins: typing.Dict[str, type] = {}

    @classmethod
    def load_plugins(cls, path: str) -> None:
        """Imports every module of a subpackage so that the plugins it defines register themselves.

        Modules that fail to import, e.g. because an optional dependency is missing, are skipped.

        :param path: The subpackage, relative to the :attr:`PACKAGE`.
        """
        package = importlib.import_module(f"{cls.PACKAGE}.{path}")
        for module in pkgutil.iter_modules(package.__path__, prefix=f"{package.__name__}."):
            logger.debug("Loading plugins from %s", module.name)
            try:
                importlib.import_module(module.name)
            except ImportError as e:
                logger.info("Could not load %s: %s", module.name, e)

    @classmethod
    def get_registry(cls, plugin_parent_cls: type) -> "PluginRegistry":
        """Returns the registry of the given plugin base class, creating it if necessary."""
        return cls._registries.setdefault(plugin_parent_cls, cls())

    @classmethod
    def register_plugin(cls, config_name: str):
        """Class decorator that registers a plugin under the given config name.

        :param config_name: The name that selects the plugin in config files.
        """

        def deco(plugin_cls):
            parent = next(
                (base for base in cls._registries if issubclass(plugin_cls, base)),
                plugin_cls.__mro__[1],
            )
            cls.get_registry(parent)._plugins[config_name] = plugin_cls
            return plugin_cls

        return deco

    def config_mapping(self) -> typing.Dict[str, type]:
        """Returns the registered plugins keyed by their config names."""
        return self._plugins

    def get_plugin(self, config_name: str) -> type:
        """Looks up a plugin class by its config name.

        :param config_name: The plugin's config name.
        :raises: :class:`ValueError` If no plugin is registered under the name.
        """
        try:
            return self._plugins[config_name]
        except KeyError:
            raise ValueError(
                f"The plugin {config_name} has not been registered. Valid options: "
                f"{', '.join(self._plugins)}."
            )

    def create(self, cfg):
        """Instantiates the plugin that the config's *type* selects.

        :param cfg: The plugin's config.
        :return: The configured plugin instance.
        """
        return self.get_plugin(cfg.type)(cfg)
