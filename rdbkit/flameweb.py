"""Flame graph data nodes and a small web server that renders them."""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Mapping
from urllib.parse import urlsplit

ASSET_NAMES = ("D3Css", "BootstrapCSS", "D3Js", "D3Flame", "D3Tip")

_log = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")

_STYLE = """
.page { max-width: 990px; margin: 0 auto; padding: 20px 0; }
.toolbar {
  display: flex;
  justify-content: space-between;
  align-items: center;
  padding: 0 15px 20px;
  border-bottom: 1px solid #e5e5e5;
}
.toolbar h3 { margin: 0; line-height: 40px; }
.toolbar form > * { margin-left: 4px; }
"""

_SCRIPT = """
(function () {
  var UNITS = ["Bytes", "kB", "MB", "GB", "TB"];

  function readable(bytes) {
    if (bytes <= 0) { return "0 Bytes"; }
    var exp = Math.min(UNITS.length - 1, Math.floor(Math.log(bytes) / Math.log(1024)));
    return parseFloat((bytes / Math.pow(1024, exp)).toFixed(2)) + " " + UNITS[exp];
  }

  function share(frame) {
    return (100 * (frame.x1 - frame.x0)).toFixed(2) + "%";
  }

  var chart = d3.flamegraph()
    .width(960)
    .cellHeight(18)
    .transitionDuration(750)
    .minFrameSize(5)
    .transitionEase(d3.easeCubic)
    .sort(true)
    .title("")
    .differential(false)
    .selfValue(false);

  chart.tooltip(
    d3.tip()
      .direction("s")
      .offset([8, 0])
      .attr("class", "d3-flame-graph-tip")
      .html(function (frame) {
        return frame.data.n + " (" + share(frame) + ", " + readable(frame.data.v) + ")";
      })
  );

  chart.label(function (frame) {
    var text = frame.data.n + " (" + share(frame) + ", ";
    if (frame.data.v > 1024) {
      text += readable(frame.data.v) + ", ";
    }
    return text + frame.data.v + " bytes)";
  });

  chart.setDetailsElement(document.getElementById("details"));

  d3.json("stacks.json", function (err, tree) {
    if (err) {
      console.warn(err);
      return;
    }
    d3.select("#chart").datum(tree).call(chart);
  });

  var term = document.getElementById("term");
  document.getElementById("search-form").addEventListener("submit", function (evt) {
    evt.preventDefault();
    chart.search(term.value);
  });
  document.getElementById("clear-search").addEventListener("click", function () {
    term.value = "";
    chart.clear();
  });
  document.getElementById("reset-zoom").addEventListener("click", function () {
    chart.resetZoom();
  });
})();
"""

_PAGE = (
    "<!DOCTYPE html>\n"
    "<html>\n"
    "<head>\n"
    '<meta charset="utf-8">\n'
    "<title>FlameGraph</title>\n"
    '<meta name="viewport" content="width=device-width, initial-scale=1">\n'
    '<style type="text/css">{{D3Css}}</style>\n'
    '<style type="text/css">{{BootstrapCSS}}</style>\n'
    "<style>" + _STYLE + "</style>\n"
    '<script type="text/javascript">{{D3Js}}</script>\n'
    '<script type="text/javascript">{{D3Flame}}</script>\n'
    '<script type="text/javascript">{{D3Tip}}</script>\n'
    "</head>\n"
    "<body>\n"
    '<div class="page">\n'
    '  <div class="toolbar">\n'
    '    <h3 class="text-muted">d3-flame-graph</h3>\n'
    '    <form id="search-form" class="form-inline">\n'
    '      <button type="button" class="btn" id="reset-zoom">Reset zoom</button>\n'
    '      <button type="button" class="btn" id="clear-search">Clear</button>\n'
    '      <input type="text" class="form-control" id="term">\n'
    '      <button type="submit" class="btn btn-primary">Search</button>\n'
    "    </form>\n"
    "  </div>\n"
    '  <div id="chart"></div>\n'
    "  <hr>\n"
    '  <div id="details"></div>\n'
    "</div>\n"
    "<script>" + _SCRIPT + "</script>\n"
    "</body>\n"
    "</html>\n"
)


@dataclass(eq=False)
class FlameItem:
    """A frame of the flame graph: a name, a total value and child frames."""

    name: str
    value: int = 0
    children: dict[str, FlameItem] = field(default_factory=dict)

    def add_child(self, child: FlameItem) -> None:
        """Attach ``child``, replacing any child of the same name."""
        self.children[child.name] = child

    def to_dict(self) -> dict[str, Any]:
        """Return the compact form used by the page: n, v and c (if any)."""
        result: dict[str, Any] = {"n": self.name, "v": self.value}
        if self.children:
            result["c"] = [child.to_dict() for child in self.children.values()]
        return result

    def to_json(self) -> str:
        """Return the frame tree as compact JSON."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


def render_page(assets: Mapping[str, str]) -> str:
    """Return the flame graph page with the given CSS and script assets inlined.

    Recognised asset names are listed in ASSET_NAMES; missing ones are left empty.
    """
    return _PLACEHOLDER.sub(lambda match: str(assets.get(match.group(1), "")), _PAGE)


def _make_handler(assets: Mapping[str, str], payload: bytes) -> type[BaseHTTPRequestHandler]:
    class _Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802
            path = urlsplit(self.path).path
            if path == "/flamegraph":
                try:
                    body = render_page(assets).encode("utf-8")
                except Exception:
                    self._send(500, b"500 - Internal Error", "text/plain; charset=utf-8")
                    return
                self._send(200, body, "text/html; charset=utf-8")
            elif path == "/stacks.json":
                self._send(200, payload, "application/json")
            else:
                self._send(404, b"404 page not found\n", "text/plain; charset=utf-8")

        def _send(self, status: int, body: bytes, content_type: str) -> None:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: Any) -> None:
            _log.debug("%s - %s", self.address_string(), format % args)

    return _Handler


class FlameServer:
    """HTTP server for the flame graph page and its data, run in a background thread."""

    def __init__(
        self,
        data: bytes | str,
        port: int,
        assets: Mapping[str, str] | None = None,
    ) -> None:
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        handler = _make_handler(dict(assets or {}), payload)
        self._httpd = ThreadingHTTPServer(("", port), handler)
        self._httpd.daemon_threads = True
        self.port: int = self._httpd.server_address[1]
        self._stopped = False
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)
        self._thread.start()

    @property
    def url(self) -> str:
        """Address of the flame graph page."""
        return f"http://localhost:{self.port}/flamegraph"

    def stop(self) -> None:
        """Shut the server down and release its port."""
        if self._stopped:
            return
        self._stopped = True
        self._httpd.shutdown()
        self._httpd.server_close()
        self._thread.join()

    def __enter__(self) -> FlameServer:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.stop()


def web(data: bytes | str, port: int) -> FlameServer:
    """Start serving ``data`` as stacks.json next to the flame graph page."""
    server = FlameServer(data, port)
    print(f"see {server.url}")
    return server