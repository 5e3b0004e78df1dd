import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from grid_builder import PROJECT_CHANGED
from session import UiSession


class FakeLoader:
    def __init__(self) -> None:
        self.project_id = None
        self.events = []

    def on_project_changed(self, event: dict) -> None:
        self.project_id = event["payload"]["project_id"]
        self.events.append(event)

    def attach(self, bus) -> None:
        bus.subscribe(PROJECT_CHANGED, self.on_project_changed)

    def detach(self, bus) -> bool:
        return bus.unsubscribe(PROJECT_CHANGED, self.on_project_changed)


class FakeForm:
    def __init__(self) -> None:
        self.unbound = False

    def unbind(self) -> None:
        self.unbound = True


class TestUiSession(unittest.TestCase):
    def test_switch_publishes_one_event(self) -> None:
        session = UiSession("s1")
        loader = FakeLoader()
        session.attach_loader("activities", loader)
        self.assertTrue(session.set_active_project(1))
        self.assertEqual(len(loader.events), 1)
        event = loader.events[0]
        self.assertEqual(event["payload"], {"project_id": 1, "previous_project_id": None})
        self.assertEqual(event["meta"]["session_id"], "s1")
        self.assertFalse(session.set_active_project(1))
        self.assertEqual(len(loader.events), 1)

    def test_attach_uses_current_project(self) -> None:
        session = UiSession(project_id=3)
        loader = FakeLoader()
        session.attach_loader("activities", loader)
        self.assertEqual(loader.project_id, 3)
        self.assertTrue(session.session_id)

    def test_reattach_replaces_previous_loader(self) -> None:
        session = UiSession()
        old, new = FakeLoader(), FakeLoader()
        session.attach_loader("activities", old)
        session.attach_loader("activities", new)
        self.assertEqual(session.bus.subscriber_count(PROJECT_CHANGED), 1)
        session.set_active_project(2)
        self.assertEqual((len(old.events), len(new.events)), (0, 1))

    def test_sessions_are_isolated(self) -> None:
        first, second = UiSession("a"), UiSession("b")
        first_loader, second_loader = FakeLoader(), FakeLoader()
        first.attach_loader("g", first_loader)
        second.attach_loader("g", second_loader)
        first.set_active_project(5)
        self.assertEqual(len(first_loader.events), 1)
        self.assertEqual(second_loader.events, [])

    def test_close_detaches_everything(self) -> None:
        session = UiSession()
        session.attach_loader("g", FakeLoader())
        form = FakeForm()
        session.forms["g"] = form
        self.assertEqual(session.loader_keys(), ["g"])
        session.close()
        self.assertTrue(form.unbound)
        self.assertEqual(session.loader_keys(), [])
        self.assertEqual(session.bus.subscriber_count(PROJECT_CHANGED), 0)
        self.assertFalse(session.detach_loader("g"))


if __name__ == "__main__":
    unittest.main()
