import io
import json
import logging
import unittest


class TestJsonlLogging(unittest.TestCase):
    def test_formatter_emits_one_json_object_with_correlation_fields(self) -> None:
        from agentrelay.util.obslog import JsonlFormatter

        fmt = JsonlFormatter(component="router")
        rec = logging.LogRecord("agentrelay.delivery", logging.INFO, __file__, 1, "delivered to %s", ("api",), None)
        rec.instance_id = "api"
        rec.delivery_method = "session-terminal"
        rec.target = "   "

        out = json.loads(fmt.format(rec))
        self.assertEqual(out["msg"], "delivered to api")
        self.assertEqual(out["component"], "router")
        self.assertEqual(out["logger"], "agentrelay.delivery")
        self.assertEqual(out["instance_id"], "api")
        self.assertEqual(out["delivery_method"], "session-terminal")
        self.assertNotIn("target", out)
        self.assertTrue(out["ts"].endswith("Z"))

    def test_parse_level(self) -> None:
        from agentrelay.util.obslog import parse_level

        self.assertEqual(parse_level("debug"), logging.DEBUG)
        self.assertEqual(parse_level(""), logging.INFO)
        self.assertEqual(parse_level("nope", default=logging.WARNING), logging.WARNING)

    def test_setup_root_json_logging_force_replaces_handlers(self) -> None:
        from agentrelay.util.obslog import JsonlFormatter, setup_root_json_logging

        root = logging.getLogger()
        saved_handlers = list(root.handlers)
        saved_level = root.level
        buf = io.StringIO()
        try:
            setup_root_json_logging(component="test", level="DEBUG", stream=buf, force=True)
            self.assertEqual(len(root.handlers), 1)
            self.assertIsInstance(root.handlers[0].formatter, JsonlFormatter)
            logging.getLogger("agentrelay.test").info("hello")
            line = buf.getvalue().strip().splitlines()[-1]
            self.assertEqual(json.loads(line)["msg"], "hello")
        finally:
            for h in list(root.handlers):
                root.removeHandler(h)
            for h in saved_handlers:
                root.addHandler(h)
            root.setLevel(saved_level)


if __name__ == "__main__":
    unittest.main()
