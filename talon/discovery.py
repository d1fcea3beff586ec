"""
Controller discovery - import a package and collect its declared controllers.

A class counts as a controller when ``@controller(path)`` was applied to it
in the module being scanned; re-exported classes are reported once, by the
module that defines them.

A module opts out of autoloading with::

    __talon_autoload__ = False
"""

from types import ModuleType
from typing import Iterator, List, Optional, Sequence
import importlib
import inspect
import logging
import pkgutil

from .controller.metadata import CONTROLLER_PATH, MetadataStore, metadata as default_metadata


logger = logging.getLogger("talon.discovery")

AUTOLOAD_FLAG = "__talon_autoload__"


class ControllerScanner:
    """
    Scans packages for controller classes.

    Args:
        store: Metadata store holding ``@controller`` declarations
        skip_prefixes: Module leaf names starting with one of these are not imported

    Example:
        controllers = ControllerScanner().scan("myservice.controllers")
    """

    def __init__(
        self,
        store: Optional[MetadataStore] = None,
        skip_prefixes: Sequence[str] = ("test", "conftest"),
    ):
        self.store = store or default_metadata
        self.skip_prefixes = tuple(skip_prefixes)
        self.scanned_modules: List[str] = []

    def scan(self, package_name: str, recursive: bool = True) -> List[type]:
        """
        Import ``package_name`` (and its submodules when ``recursive``) and
        return the controllers it defines, in import order.

        Import errors propagate.
        """
        root = importlib.import_module(package_name)
        found: List[type] = []
        for module in self._walk(root, recursive):
            if getattr(module, AUTOLOAD_FLAG, True) is False:
                logger.debug("Skipping %s (autoload disabled)", module.__name__)
                continue
            self.scanned_modules.append(module.__name__)
            for cls in self.controllers_in(module):
                if cls not in found:
                    found.append(cls)

        logger.info("Discovered %d controllers in %s", len(found), package_name)
        return found

    def controllers_in(self, module: ModuleType) -> List[type]:
        return [
            obj
            for _, obj in inspect.getmembers(module, inspect.isclass)
            if obj.__module__ == module.__name__ and self.store.has(obj, CONTROLLER_PATH)
        ]

    def _walk(self, root: ModuleType, recursive: bool) -> Iterator[ModuleType]:
        yield root
        if not recursive or not hasattr(root, "__path__"):
            return
        for info in pkgutil.walk_packages(root.__path__, root.__name__ + "."):
            leaf = info.name.rsplit(".", 1)[-1]
            if leaf.startswith(self.skip_prefixes):
                continue
            yield importlib.import_module(info.name)


def discover_controllers(packages: Sequence[str], recursive: bool = True) -> List[type]:
    """Controllers from every package in ``packages``, first occurrence wins."""
    scanner = ControllerScanner()
    found: List[type] = []
    for package_name in packages:
        for cls in scanner.scan(package_name, recursive=recursive):
            if cls not in found:
                found.append(cls)
    return found
