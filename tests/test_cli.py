import io
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self._env = patch.dict(os.environ, {"AGENTRELAY_HOME": self._td.name})
        self._env.start()
        os.environ.pop("AGENTRELAY_HOST", None)
        os.environ.pop("AGENTRELAY_PORT", None)

    def tearDown(self) -> None:
        self._env.stop()
        self._td.cleanup()

    def test_send_posts_camelcase_payload(self) -> None:
        import httpx

        from agentrelay import cli

        resp = httpx.Response(200, json={"success": True, "message": "Message delivered"})
        with patch.object(cli.httpx, "request", return_value=resp) as req:
            with redirect_stdout(io.StringIO()) as out:
                rc = cli.main(["send", "api", "ship it", "--from", "main", "--router-url", "http://relay:9000/"])

        self.assertEqual(rc, 0)
        method, url = req.call_args.args
        self.assertEqual(method, "POST")
        self.assertEqual(url, "http://relay:9000/message")
        self.assertEqual(
            req.call_args.kwargs["json"],
            {"from": "main", "to": "api", "content": "ship it", "type": "message"},
        )
        self.assertIn("Message delivered", out.getvalue())

    def test_send_reports_unreachable_router(self) -> None:
        import httpx

        from agentrelay import cli

        with patch.object(cli.httpx, "request", side_effect=httpx.ConnectError("refused")):
            with redirect_stdout(io.StringIO()) as out:
                rc = cli.main(["send", "api", "hi"])

        self.assertEqual(rc, 1)
        self.assertIn("router unreachable", out.getvalue())

    def test_send_failure_status_is_nonzero(self) -> None:
        import httpx

        from agentrelay import cli

        resp = httpx.Response(404, json={"success": False, "message": "Target instance not found"})
        with patch.object(cli.httpx, "request", return_value=resp):
            with redirect_stdout(io.StringIO()):
                self.assertEqual(cli.main(["send", "ghost", "hi"]), 1)

    def test_register_requires_running_router(self) -> None:
        from agentrelay import cli

        with patch.object(cli, "router_running", return_value=False):
            self.assertEqual(cli.main(["register", self._td.name, "ui"]), 1)

    def test_register_defaults_from_role(self) -> None:
        from agentrelay import cli

        with patch.object(cli, "router_running", return_value=True), patch.object(
            cli, "_call", return_value=(200, {"success": True})
        ) as call:
            with redirect_stdout(io.StringIO()):
                rc = cli.main(["register", self._td.name, "ui"])

        self.assertEqual(rc, 0)
        self.assertEqual(call.call_args.args, ("POST", "http://localhost:3333/register"))
        self.assertEqual(
            call.call_args.kwargs["payload"],
            {"id": "ui", "name": "Ui Instance", "role": "ui", "tmuxSession": "ui-session", "windowType": "tmux-session"},
        )

    def test_config_set_port_persists(self) -> None:
        from agentrelay import cli
        from agentrelay.kernel.settings import load_settings

        with redirect_stdout(io.StringIO()):
            self.assertEqual(cli.main(["config", "--set-port", "4100"]), 0)
        self.assertEqual(load_settings().router.port, 4100)

        with redirect_stdout(io.StringIO()):
            self.assertEqual(cli.main(["config", "--reset"]), 0)
        self.assertEqual(load_settings().router.port, 3333)

    def test_version(self) -> None:
        from agentrelay import __version__, cli

        with redirect_stdout(io.StringIO()) as out:
            self.assertEqual(cli.main(["version"]), 0)
        self.assertEqual(out.getvalue().strip(), __version__)


if __name__ == "__main__":
    unittest.main()
