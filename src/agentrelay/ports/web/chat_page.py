from __future__ import annotations


CHAT_PAGE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>agentrelay chat</title>
<meta name="viewport" content="width=device-width, initial-scale=1">
<style>
  body { font-family: system-ui, sans-serif; margin: 0; display: flex; height: 100vh; }
  aside { width: 220px; border-right: 1px solid #ddd; padding: 12px; overflow-y: auto; }
  main { flex: 1; display: flex; flex-direction: column; }
  #log { flex: 1; overflow-y: auto; padding: 12px; }
  .msg { margin: 6px 0; padding: 6px 8px; border-radius: 6px; background: #f4f4f4; }
  .msg.completion { background: #e8f6ea; }
  .msg.system { background: #fdf3e1; }
  .msg.failed { border-left: 3px solid #c33; }
  .meta { font-size: 12px; color: #666; }
  form { display: flex; gap: 6px; padding: 8px; border-top: 1px solid #ddd; }
  #content { flex: 1; }
  #state { font-size: 12px; color: #666; }
</style>
</head>
<body>
<aside>
  <h3>Instances</h3>
  <div id="state">connecting...</div>
  <ul id="instances"></ul>
</aside>
<main>
  <div id="log"></div>
  <form id="send">
    <select id="to"><option value="all">all</option></select>
    <input id="content" autocomplete="off" placeholder="message">
    <button type="submit">Send</button>
  </form>
</main>
<script>
(function () {
  var log = document.getElementById("log");
  var list = document.getElementById("instances");
  var to = document.getElementById("to");
  var state = document.getElementById("state");
  var ws = null;
  var retry = 1000;

  function el(tag, cls, text) {
    var e = document.createElement(tag);
    if (cls) e.className = cls;
    if (text !== undefined) e.textContent = text;
    return e;
  }

  function renderInstances(instances) {
    list.innerHTML = "";
    var current = to.value;
    to.innerHTML = "";
    to.appendChild(el("option", "", "all")).value = "all";
    instances.forEach(function (i) {
      list.appendChild(el("li", "", (i.name || i.id) + " (" + i.role + ")"));
      var o = el("option", "", i.name || i.id);
      o.value = i.id;
      to.appendChild(o);
    });
    to.value = current || "all";
    if (!to.value) to.value = "all";
  }

  function renderMessage(m) {
    var cls = "msg " + (m.type || "message") + (m.delivered === false ? " failed" : "");
    var d = el("div", cls);
    var when = new Date(m.timestamp).toLocaleTimeString();
    d.appendChild(el("div", "meta", when + "  " + (m.fromDisplayName || m.from) + " -> " +
      (m.toDisplayName || m.to) + (m.toAll ? " (all)" : "") + "  [" + m.deliveryMethod + "]"));
    d.appendChild(el("div", "", m.content));
    log.appendChild(d);
    log.scrollTop = log.scrollHeight;
  }

  function connect() {
    var proto = location.protocol === "https:" ? "wss://" : "ws://";
    ws = new WebSocket(proto + location.host + "/ws");
    ws.onopen = function () { state.textContent = "connected"; retry = 1000; };
    ws.onmessage = function (ev) {
      var data = JSON.parse(ev.data);
      if (data.type === "init") {
        log.innerHTML = "";
        renderInstances(data.instances || []);
        (data.messages || []).forEach(renderMessage);
      } else if (data.type === "new_message") {
        renderMessage(data.message);
      } else if (data.type === "error") {
        state.textContent = "error: " + data.message;
      }
    };
    ws.onclose = function () {
      state.textContent = "disconnected, retrying...";
      setTimeout(connect, retry);
      retry = Math.min(retry * 2, 30000);
    };
  }

  document.getElementById("send").addEventListener("submit", function (ev) {
    ev.preventDefault();
    var input = document.getElementById("content");
    var text = input.value.trim();
    if (!text || !ws || ws.readyState !== WebSocket.OPEN) return;
    ws.send(JSON.stringify({ type: "send_message", from: "human", to: to.value, content: text }));
    input.value = "";
  });

  connect();
})();
</script>
</body>
</html>
"""
