# tests/unit/test_base_migration.py

"""Tests for imperative migration steps and the step registry."""

import pytest

from pgdbm.core.exceptions import (
    ConfigurationError,
    StepModuleImportError,
    StepRegistrationError,
    UnregisteredStepError,
)
from pgdbm.database.migrations import base_migration
from pgdbm.database.migrations.base_migration import (
    FunctionMigration,
    Migration,
    StepRegistry,
    import_step_modules,
    make_identifier,
    migration_step,
)

from .conftest import write_module


class RenameColumns(Migration):
    """Rename legacy columns.

    Longer explanation that is not part of the description.
    """

    def upgrade(self, manager):
        manager.renamed = True


class Described(Migration):
    description = "Explicit description"

    def upgrade(self, manager):
        pass


class TestMigration:
    """Test the Migration base class."""

    def test_cannot_instantiate_abstract(self):
        """Test that upgrade must be implemented."""
        with pytest.raises(TypeError):
            Migration()

    def test_description_from_docstring(self):
        """Test that the first docstring line is the description."""
        assert RenameColumns().get_description() == "Rename legacy columns."

    def test_description_attribute_wins(self):
        """Test that an explicit description takes precedence."""
        assert Described().get_description() == "Explicit description"

    def test_repr(self):
        """Test the representation."""
        assert repr(Described()) == "<Described: Explicit description>"

    def test_function_migration(self):
        """Test adapting a plain callable."""
        calls = []

        def fix_data(manager):
            """Fix the data."""
            calls.append(manager)

        migration = FunctionMigration(fix_data)
        migration.upgrade("manager")

        assert calls == ["manager"]
        assert migration.get_description() == "Fix the data."
        assert FunctionMigration(fix_data, "Custom").get_description() == "Custom"


class TestStepRegistry:
    """Test registering and resolving steps."""

    def test_make_identifier(self):
        """Test the identifier format."""
        assert make_identifier(12, "02_backfill") == "12/02_backfill"

    def test_add_instance_class_and_callable(self, registry):
        """Test every accepted step form."""
        instance = Described()
        assert registry.add(1, "01_a", instance) is instance
        assert isinstance(registry.add(1, "02_b", RenameColumns), RenameColumns)
        assert isinstance(registry.add(1, "03_c", lambda manager: None), FunctionMigration)

        assert registry.identifiers() == ["1/01_a", "1/02_b", "1/03_c"]
        assert len(registry) == 3
        assert "1/02_b" in registry
        assert list(registry) == ["1/01_a", "1/02_b", "1/03_c"]

    def test_duplicate_rejected(self, registry):
        """Test that an identifier can only be registered once."""
        registry.add(2, "01_a", Described)

        with pytest.raises(StepRegistrationError) as exc_info:
            registry.add(2, "01_a", RenameColumns)

        assert exc_info.value.details["identifier"] == "2/01_a"

    def test_invalid_step_rejected(self, registry):
        """Test that non-callables cannot be registered."""
        with pytest.raises(TypeError):
            registry.add(1, "01_a", "not a step")

    def test_resolve(self, registry):
        """Test looking up a registered step."""
        migration = registry.add(4, "01_a", Described)
        assert registry.resolve("4/01_a") is migration

    def test_resolve_unknown(self, registry):
        """Test looking up an unknown identifier."""
        with pytest.raises(UnregisteredStepError) as exc_info:
            registry.resolve("4/99_missing")

        assert exc_info.value.identifier == "4/99_missing"

    def test_register_decorator_returns_original(self, registry):
        """Test the decorator form."""
        @registry.register(3, "01_fix", description="Fix things")
        def fix(manager):
            return "fixed"

        assert fix("manager") == "fixed"
        assert registry.resolve("3/01_fix").get_description() == "Fix things"

    def test_registries_are_independent(self):
        """Test that separate registries do not share steps."""
        first, second = StepRegistry(), StepRegistry()
        first.add(1, "01_a", Described)

        assert "1/01_a" not in second


class TestDefaultRegistry:
    """Test the module-level registry and decorator."""

    def test_migration_step_registers_in_default(self, monkeypatch):
        """Test that migration_step targets the default registry."""
        fresh = StepRegistry()
        monkeypatch.setattr(base_migration, "default_registry", fresh)

        @migration_step(8, "01_seed_lookup")
        class SeedLookup(Migration):
            """Seed lookup rows."""

            def upgrade(self, manager):
                pass

        assert "8/01_seed_lookup" in fresh
        assert fresh.resolve("8/01_seed_lookup").get_description() == "Seed lookup rows."


class TestImportStepModules:
    """Test loading the modules that register steps."""

    def test_import_registers_steps(self, tmp_path, monkeypatch):
        """Test that importing a step module fills the default registry."""
        fresh = StepRegistry()
        monkeypatch.setattr(base_migration, "default_registry", fresh)
        write_module(tmp_path, "app_registered_steps", (
            "from pgdbm import migration_step\n"
            "\n"
            "\n"
            "@migration_step(5, '02_fix_slugs')\n"
            "def fix_slugs(manager):\n"
            "    '''Fix slugs.'''\n"
        ))
        monkeypatch.syspath_prepend(str(tmp_path))

        modules = import_step_modules(["app_registered_steps"])

        assert [module.__name__ for module in modules] == ["app_registered_steps"]
        assert fresh.identifiers() == ["5/02_fix_slugs"]
        assert fresh.resolve("5/02_fix_slugs").get_description() == "Fix slugs."

    def test_missing_module(self):
        """Test that a module that cannot be imported is a configuration error."""
        with pytest.raises(StepModuleImportError) as exc_info:
            import_step_modules(["pgdbm_no_such_steps"])

        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.message.startswith("Cannot import migration step module pgdbm_no_such_steps")
        assert isinstance(exc_info.value.cause, ImportError)

    def test_nothing_to_import(self):
        """Test an empty module list."""
        assert import_step_modules([]) == []
