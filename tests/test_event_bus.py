import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from engine_errors import ConfigurationError
from event_bus import EventBus, make_event


def _changed(project_id=1) -> dict:
    return make_event("project.changed", {"project_id": project_id}, "s1")


class TestEventBus(unittest.TestCase):
    def test_make_event_fills_meta(self) -> None:
        payload = {"project_id": 1}
        event = make_event("project.changed", payload, "s1")
        meta = event["meta"]
        self.assertTrue(meta["occurred_at"].endswith("Z"))
        self.assertIsInstance(meta["event_id"], str)
        self.assertEqual(meta["session_id"], "s1")
        payload["project_id"] = 2
        self.assertEqual(event["payload"], {"project_id": 1})
        self.assertNotEqual(_changed()["meta"]["event_id"], _changed()["meta"]["event_id"])

    def test_handlers_called_in_order(self) -> None:
        bus = EventBus()
        calls = []
        bus.subscribe("project.changed", lambda evt: calls.append(("a", evt["payload"]["project_id"])))
        bus.subscribe("project.changed", lambda evt: calls.append(("b", evt["payload"]["project_id"])))
        bus.subscribe("other", lambda evt: calls.append("other"))
        self.assertEqual(bus.publish(_changed(4)), 2)
        self.assertEqual(calls, [("a", 4), ("b", 4)])

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        calls = []

        def handler(evt: dict) -> None:
            calls.append(evt)

        bus.subscribe("project.changed", handler)
        self.assertEqual(bus.subscriber_count("project.changed"), 1)
        self.assertTrue(bus.unsubscribe("project.changed", handler))
        self.assertFalse(bus.unsubscribe("project.changed", handler))
        self.assertEqual(bus.publish(_changed()), 0)
        self.assertEqual(calls, [])
        self.assertEqual(bus.subscriber_count("project.changed"), 0)

    def test_failing_handler_does_not_stop_others(self) -> None:
        bus = EventBus()
        calls = []

        def broken(evt: dict) -> None:
            raise RuntimeError("boom")

        bus.subscribe("project.changed", broken)
        bus.subscribe("project.changed", lambda evt: calls.append("ok"))
        with self.assertLogs("screenkit.events", level="ERROR"):
            delivered = bus.publish(_changed())
        self.assertEqual(calls, ["ok"])
        self.assertEqual(delivered, 1)

    def test_name_and_payload_checked(self) -> None:
        with self.assertRaises(ConfigurationError) as ctx:
            make_event("", {})
        self.assertEqual(ctx.exception.code, "EVENT_NAME_INVALID")
        with self.assertRaises(ConfigurationError) as ctx:
            make_event("project.changed", [1])
        self.assertEqual(ctx.exception.code, "EVENT_PAYLOAD_INVALID")
        self.assertIsNone(make_event("project.changed", {})["meta"]["session_id"])


if __name__ == "__main__":
    unittest.main()
