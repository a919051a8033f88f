import unittest
from datetime import datetime, timedelta, timezone


T0 = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _record(i: int, to: str = "main"):
    from agentrelay.contracts.v1 import MessageRecord
    from agentrelay.util.time import to_utc_iso

    return MessageRecord(
        from_="ui",
        to=to,
        from_display_name="ui",
        to_display_name=to,
        content=f"m{i}",
        formatted_content=f"m{i}",
        delivery_method="generic",
        timestamp=to_utc_iso(T0 + timedelta(seconds=i)),
    )


class TestMessageHistory(unittest.TestCase):
    def test_page_is_capped_to_most_recent_twenty(self) -> None:
        from agentrelay.kernel.history import MessageHistory

        h = MessageHistory()
        for i in range(45):
            h.append(_record(i))

        page, total = h.query()
        self.assertEqual(total, 45)
        self.assertEqual(len(page), 20)
        self.assertEqual(page[0].content, "m25")
        self.assertEqual(page[-1].content, "m44")

    def test_since_is_strict(self) -> None:
        from agentrelay.kernel.history import MessageHistory

        h = MessageHistory()
        for i in range(5):
            h.append(_record(i))

        page, total = h.query(since=T0 + timedelta(seconds=2))
        self.assertEqual([r.content for r in page], ["m3", "m4"])
        self.assertEqual(total, 2)

    def test_instance_filter_matches_recipient(self) -> None:
        from agentrelay.kernel.history import MessageHistory

        h = MessageHistory()
        h.append(_record(0, to="main"))
        h.append(_record(1, to="ui"))
        h.append(_record(2, to="main"))

        page, total = h.query(instance="main")
        self.assertEqual([r.content for r in page], ["m0", "m2"])
        self.assertEqual(total, 2)

    def test_recent(self) -> None:
        from agentrelay.kernel.history import MessageHistory

        h = MessageHistory()
        self.assertEqual(h.recent(10), [])
        for i in range(12):
            h.append(_record(i))
        self.assertEqual([r.content for r in h.recent(3)], ["m9", "m10", "m11"])
        self.assertEqual(h.recent(0), [])
        self.assertEqual(len(h), 12)

    def test_record_ids_are_unique(self) -> None:
        ids = {_record(i).id for i in range(500)}
        self.assertEqual(len(ids), 500)

    def test_record_wire_shape_uses_camel_case(self) -> None:
        wire = _record(1).to_wire()
        self.assertEqual(wire["from"], "ui")
        self.assertIn("fromDisplayName", wire)
        self.assertIn("formattedContent", wire)
        self.assertIn("deliveryMethod", wire)
        self.assertFalse(wire["toAll"])
        self.assertTrue(wire["delivered"])


if __name__ == "__main__":
    unittest.main()
