# src/pgdbm/database/migrations/base_migration.py

"""
Imperative migration steps.

A version directory may contain, besides SQL files, marker files for steps
that need Python: data fixes, conditional DDL, calls into the manager such as
importing a contrib module. The marker's content is never evaluated. Its
identifier, ``"<version>/<file stem>"``, selects a step registered in a
StepRegistry, and the step is called with the running DatabaseManager.

Example::

    from pgdbm import migration_step

    @migration_step(12, "02_backfill_slugs")
    def backfill_slugs(manager):
        manager.execute_sql_file(Path("inc/fixups/slugs.sql"))
"""

import importlib
import inspect
import logging
from abc import ABC, abstractmethod
from types import ModuleType
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Iterator, List, Optional, Type, Union

from ...core.exceptions import StepModuleImportError, StepRegistrationError, UnregisteredStepError

if TYPE_CHECKING:
    from ..manager import DatabaseManager

logger = logging.getLogger(__name__)

StepFunction = Callable[["DatabaseManager"], Any]


class Migration(ABC):
    """
    Abstract base class for imperative migration steps.

    Subclasses implement ``upgrade``. There is no ``downgrade``: versions only
    move forward, and recovery from a failed run is the pre-migration dump.
    """

    description: str = ""

    @abstractmethod
    def upgrade(self, manager: "DatabaseManager") -> None:
        """
        Apply the step.

        Args:
            manager: The running manager, giving access to configuration,
                the SQL executor, the connector and lifecycle operations
        """

    def get_description(self) -> str:
        """
        Get a human-readable description of this step.

        Returns:
            The ``description`` attribute, the first docstring line, or the class name
        """
        if self.description:
            return self.description
        doc = inspect.cleandoc(self.__class__.__doc__ or "")
        if doc:
            return doc.splitlines()[0]
        return self.__class__.__name__

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.get_description()}>"


class FunctionMigration(Migration):
    """Adapts a plain ``fn(manager)`` callable to the Migration interface."""

    def __init__(self, func: StepFunction, description: Optional[str] = None) -> None:
        self.func = func
        doc = inspect.getdoc(func)
        self.description = description or (doc.splitlines()[0] if doc else func.__name__)

    def upgrade(self, manager: "DatabaseManager") -> None:
        self.func(manager)


def make_identifier(version: int, name: str) -> str:
    """Registry key for the step ``name`` (a file stem) of ``version``."""
    return f"{int(version)}/{name}"


class StepRegistry:
    """
    Maps step identifiers to imperative migration steps.

    Steps are registered when the application imports the module defining
    them; nothing is discovered or loaded from the migrations directory.
    """

    def __init__(self) -> None:
        self._steps: Dict[str, Migration] = {}

    def add(self, version: int, name: str, step: Union[Migration, Type[Migration], StepFunction],
            description: Optional[str] = None) -> Migration:
        """
        Register a step.

        Args:
            version: Version directory the marker file lives in
            name: Marker file name without its suffix
            step: A Migration instance or subclass, or a ``fn(manager)`` callable
            description: Optional description for callables

        Returns:
            The registered Migration

        Raises:
            StepRegistrationError: If the identifier is already taken
        """
        identifier = make_identifier(version, name)
        if identifier in self._steps:
            raise StepRegistrationError(identifier)

        if isinstance(step, Migration):
            migration = step
        elif inspect.isclass(step) and issubclass(step, Migration):
            migration = step()
        elif callable(step):
            migration = FunctionMigration(step, description)
        else:
            raise TypeError(f"Cannot register {step!r} as a migration step")

        self._steps[identifier] = migration
        logger.debug(f"Registered migration step {identifier}: {migration.get_description()}")
        return migration

    def register(self, version: int, name: str,
                 description: Optional[str] = None) -> Callable[[Any], Any]:
        """
        Decorator form of ``add``; returns the decorated object unchanged.
        """
        def decorator(step: Any) -> Any:
            self.add(version, name, step, description)
            return step
        return decorator

    def resolve(self, identifier: str) -> Migration:
        """
        Look up a step.

        Raises:
            UnregisteredStepError: If nothing is registered under ``identifier``
        """
        try:
            return self._steps[identifier]
        except KeyError:
            raise UnregisteredStepError(identifier) from None

    def identifiers(self) -> List[str]:
        return sorted(self._steps)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[str]:
        return iter(self.identifiers())


default_registry = StepRegistry()


def migration_step(version: int, name: str,
                   description: Optional[str] = None) -> Callable[[Any], Any]:
    """Register a step in the default registry."""
    return default_registry.register(version, name, description)


def import_step_modules(module_names: Iterable[str]) -> List[ModuleType]:
    """
    Import the modules that register imperative steps.

    Registration happens as a side effect of the import, so this is how a
    command-line run makes the application's steps available.

    Args:
        module_names: Dotted module names

    Returns:
        The imported modules, in order

    Raises:
        StepModuleImportError: If a module cannot be imported
    """
    modules: List[ModuleType] = []
    for name in module_names:
        try:
            modules.append(importlib.import_module(name))
        except ImportError as e:
            raise StepModuleImportError(name, cause=e) from e
        logger.debug(f"Imported migration step module {name}")
    return modules
