import os
import sys
import unittest
from dataclasses import dataclass


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from engine_errors import ConfigurationError, EntityTypeNotFoundError, RegistryLookupError, RegistryTypeError
from entities import NamedEntity
from entity_catalog import EntityCatalog
from registry import ServiceRegistry


class UserService:
    pass


class OtherService:
    pass


@dataclass(eq=False)
class User(NamedEntity):
    pass


@dataclass(eq=False)
class Team(NamedEntity):
    pass


class TestServiceRegistry(unittest.TestCase):
    def test_register_and_lookup(self) -> None:
        registry = ServiceRegistry()
        service = UserService()
        registry.register("userService", service)
        self.assertIs(registry.lookup("userService"), service)
        self.assertIs(registry.lookup_typed("userService", UserService), service)
        self.assertIn("userService", registry)
        self.assertIsNone(registry.find("ghost"))

    def test_lookup_failures(self) -> None:
        registry = ServiceRegistry()
        registry.register("userService", UserService())
        with self.assertRaises(RegistryLookupError) as ctx:
            registry.lookup("ghost")
        self.assertIn("ghost", ctx.exception.message)
        with self.assertRaises(RegistryTypeError) as ctx:
            registry.lookup_typed("userService", OtherService)
        self.assertEqual(ctx.exception.detail, {"expected": "OtherService", "actual": "UserService"})

    def test_duplicate_and_invalid_names(self) -> None:
        registry = ServiceRegistry()
        registry.register("userService", UserService())
        with self.assertRaises(ConfigurationError) as ctx:
            registry.register("userService", UserService())
        self.assertEqual(ctx.exception.code, "REGISTRY_DUPLICATE")
        with self.assertRaises(ConfigurationError):
            registry.register("  ", UserService())

    def test_frozen_registry_is_read_only(self) -> None:
        registry = ServiceRegistry()
        registry.register("userService", UserService())
        registry.freeze()
        self.assertTrue(registry.frozen)
        with self.assertRaises(ConfigurationError) as ctx:
            registry.register("other", OtherService())
        self.assertEqual(ctx.exception.code, "REGISTRY_FROZEN")
        self.assertEqual(registry.names(), ["userService"])

    def test_lookup_by_type(self) -> None:
        registry = ServiceRegistry()
        registry.register("a", UserService())
        registry.freeze()
        self.assertIsInstance(registry.lookup_by_type(UserService), UserService)


class TestEntityCatalog(unittest.TestCase):
    def test_register_and_resolve(self) -> None:
        catalog = EntityCatalog()
        catalog.register(User, service="userService")
        catalog.register(Team, name="Squad")
        self.assertIs(catalog.resolve("User"), User)
        self.assertIs(catalog.resolve("Squad"), Team)
        self.assertEqual(catalog.name_of(Team), "Squad")
        self.assertEqual(catalog.service_for("User"), "userService")
        self.assertIsNone(catalog.service_for("Squad"))
        self.assertEqual(catalog.names(), ["Squad", "User"])

    def test_unknown_and_conflicting_names(self) -> None:
        catalog = EntityCatalog()
        catalog.register(User)
        catalog.register(User)
        with self.assertRaises(ConfigurationError):
            catalog.register(Team, name="User")
        with self.assertRaises(EntityTypeNotFoundError):
            catalog.resolve("Ghost")
        self.assertFalse(catalog.has("Ghost"))

    def test_listing_describes_fields(self) -> None:
        catalog = EntityCatalog()
        catalog.register(User, service="userService")
        listing = catalog.listing()
        self.assertEqual(listing[0]["entity_type"], "User")
        self.assertEqual([f["name"] for f in listing[0]["fields"]][:2], ["name", "description"])


if __name__ == "__main__":
    unittest.main()
