import os
import tempfile
import unittest
from typing import List

from agentrelay.daemon.delivery import Pacing, TmuxSurface


class FakeSurface(TmuxSurface):
    def __init__(self) -> None:
        super().__init__()
        self.calls: List[List[str]] = []

    async def _run(self, args: List[str]) -> None:
        self.calls.append(list(args))

    async def pause(self, seconds: float) -> None:
        return None


class TestRealtimeChannel(unittest.TestCase):
    def setUp(self) -> None:
        from agentrelay.daemon.delivery import DeliverySelector
        from agentrelay.daemon.router import MessageRouter
        from agentrelay.ports.web.app import create_app

        self._td = tempfile.TemporaryDirectory()
        self._old_home = os.environ.get("AGENTRELAY_HOME")
        os.environ["AGENTRELAY_HOME"] = self._td.name

        self.surface = FakeSurface()
        self.router = MessageRouter(selector=DeliverySelector(surface=self.surface, pacing=Pacing(0, 0, 0)))
        self.app = create_app(self.router)

    def tearDown(self) -> None:
        if self._old_home is None:
            os.environ.pop("AGENTRELAY_HOME", None)
        else:
            os.environ["AGENTRELAY_HOME"] = self._old_home
        self._td.cleanup()

    def test_init_carries_snapshot_and_recent_history(self) -> None:
        from fastapi.testclient import TestClient

        with TestClient(self.app) as client:
            client.post("/register", json={"id": "main", "role": "main", "windowType": "vscode-terminal-simple"})
            for i in range(25):
                client.post("/message", json={"from": "ui", "to": "main", "content": f"m{i}"})

            with client.websocket_connect("/ws") as ws:
                init = ws.receive_json()

        self.assertEqual(init["type"], "init")
        self.assertEqual([i["id"] for i in init["instances"]], ["main"])
        self.assertEqual(len(init["messages"]), 20)
        self.assertEqual(init["messages"][0]["content"], "m5")
        self.assertEqual(init["messages"][-1]["content"], "m24")

    def test_any_path_upgrades(self) -> None:
        from fastapi.testclient import TestClient

        with TestClient(self.app) as client:
            with client.websocket_connect("/") as ws:
                self.assertEqual(ws.receive_json()["type"], "init")
            with client.websocket_connect("/some/other/path") as ws:
                self.assertEqual(ws.receive_json()["type"], "init")

    def test_http_send_is_pushed_once_to_every_subscriber(self) -> None:
        from fastapi.testclient import TestClient

        with TestClient(self.app) as client:
            client.post("/register", json={"id": "main", "role": "main", "windowType": "vscode-terminal-simple"})
            with client.websocket_connect("/ws") as ws1, client.websocket_connect("/ws") as ws2:
                ws1.receive_json()
                ws2.receive_json()
                self.assertEqual(len(self.router.subscribers), 2)

                client.post("/message", json={"from": "ui", "to": "main", "content": "first"})
                client.post("/message", json={"from": "ui", "to": "main", "content": "second"})

                for ws in (ws1, ws2):
                    a = ws.receive_json()
                    b = ws.receive_json()
                    self.assertEqual(a["type"], "new_message")
                    self.assertEqual(a["message"]["content"], "first")
                    self.assertEqual(b["message"]["content"], "second")
                    self.assertNotEqual(a["message"]["id"], b["message"]["id"])

        self.assertEqual(len(self.router.subscribers), 0)

    def test_realtime_send_goes_through_delivery(self) -> None:
        from fastapi.testclient import TestClient

        with TestClient(self.app) as client:
            client.post("/register", json={"id": "api", "name": "API", "role": "api", "tmuxSession": "api-s", "windowType": "tmux-session"})
            with client.websocket_connect("/ws") as ws:
                ws.receive_json()
                ws.send_json({"type": "send_message", "from": "human", "to": "api", "content": "please rebase"})
                event = ws.receive_json()

        self.assertEqual(event["type"], "new_message")
        msg = event["message"]
        self.assertEqual(msg["to"], "api")
        self.assertEqual(msg["toDisplayName"], "API")
        self.assertEqual(msg["deliveryMethod"], "session-terminal")
        self.assertTrue(msg["delivered"])
        self.assertEqual(self.surface.calls[0], ["send-keys", "-t", "api-s", "C-c"])
        self.assertEqual(len(self.router.history), 1)

    def test_realtime_send_to_human_is_recorded_only(self) -> None:
        from fastapi.testclient import TestClient

        with TestClient(self.app) as client:
            with client.websocket_connect("/ws") as ws:
                ws.receive_json()
                ws.send_json({"type": "send_message", "from": "main", "to": "human", "content": "done"})
                event = ws.receive_json()

        self.assertEqual(event["message"]["deliveryMethod"], "web-chat")
        self.assertEqual(self.surface.calls, [])

    def test_realtime_broadcast(self) -> None:
        from fastapi.testclient import TestClient

        with TestClient(self.app) as client:
            client.post("/register", json={"id": "a", "role": "main", "windowType": "vscode-terminal-simple"})
            client.post("/register", json={"id": "b", "role": "ui", "windowType": "vscode-terminal-simple"})
            with client.websocket_connect("/ws") as ws:
                ws.receive_json()
                ws.send_json({"type": "send_message", "to": "all", "content": "sync"})
                first = ws.receive_json()["message"]
                second = ws.receive_json()["message"]

        self.assertEqual([first["to"], second["to"]], ["a", "b"])
        self.assertTrue(first["toAll"] and second["toAll"])
        self.assertEqual(first["from"], "human")

    def test_blank_content_is_rejected_like_http(self) -> None:
        from fastapi.testclient import TestClient

        with TestClient(self.app) as client:
            client.post("/register", json={"id": "main", "role": "main", "windowType": "vscode-terminal-simple"})
            with client.websocket_connect("/ws") as ws:
                ws.receive_json()
                ws.send_json({"type": "send_message", "to": "main", "content": "   "})
                err = ws.receive_json()
            http = client.post("/message", json={"from": "human", "to": "main", "content": "   "})

        self.assertEqual(err["type"], "error")
        self.assertEqual(http.status_code, 400)
        self.assertEqual(len(self.router.history), 0)

    def test_unknown_target_gets_error_frame(self) -> None:
        from fastapi.testclient import TestClient

        with TestClient(self.app) as client:
            with client.websocket_connect("/ws") as ws:
                ws.receive_json()
                ws.send_json({"type": "send_message", "to": "ghost", "content": "hi"})
                err = ws.receive_json()
                ws.send_text("not json")
                err2 = ws.receive_json()

        self.assertEqual(err, {"type": "error", "message": "Target instance not found"})
        self.assertEqual(err2["type"], "error")
        self.assertEqual(len(self.router.history), 0)


if __name__ == "__main__":
    unittest.main()
