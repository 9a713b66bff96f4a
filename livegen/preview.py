"""
Preview health: is the dev server up, does the page render, what is it
complaining about. Everything found here is reported, never raised, so a
broken preview cannot take a session down.
"""
import logging, re, time
from typing import NamedTuple

import requests

log = logging.getLogger("preview")


class DetectedError(NamedTuple):
    kind:     str          # type | lint | build | syntax | runtime | browser
    severity: str          # error | warning
    message:  str
    file:     str = None
    line:     int = None
    column:   int = None
    source:   str = None


_PATTERNS = [
    # src/file.ts(10,5): error TS2322: ...
    ("type", "typescript",
     re.compile(r"^(?P<file>.+)\((?P<line>\d+),(?P<col>\d+)\):\s*(?P<sev>error|warning)\s+(?P<code>TS\d+):\s*(?P<msg>.+)$")),
    # [vite] error: ... / [vite] Internal server error: ...
    ("build", "vite",
     re.compile(r"^\[vite\]\s*(?:(?P<sev>error|warning)|Internal server error):\s*(?P<msg>.+)$", re.IGNORECASE)),
    ("build", "vite",
     re.compile(r"(?P<msg>Failed to resolve import .+|does not provide an export named .+)$")),
    # file:line:col: error: ...
    ("syntax", "generic",
     re.compile(r"^(?P<file>.+?):(?P<line>\d+):(?P<col>\d+):\s*(?P<sev>error|warning|Error|Warning):\s*(?P<msg>.+)$")),
    # TypeError: ...
    ("runtime", None,
     re.compile(r"^(?P<src>\w+Error):\s*(?P<msg>.+)$")),
]


def parse_terminal_output(output: str) -> list:
    """Error lines in dev-server / compiler output, most specific pattern first."""
    errors = []
    for line in (output or "").splitlines():
        line = line.strip()
        if not line:
            continue
        for kind, source, rx in _PATTERNS:
            m = rx.search(line)
            if not m:
                continue
            g = m.groupdict()
            errors.append(DetectedError(
                kind=kind,
                severity=(g.get("sev") or "error").lower(),
                message=g["msg"].strip(),
                file=g.get("file"),
                line=int(g["line"]) if g.get("line") else None,
                column=int(g["col"]) if g.get("col") else None,
                source=source or g.get("src"),
            ))
            break
    return errors


def wait_for_server(url: str, timeout: float = 30, interval: float = 1.5):
    """Poll until the server answers 200. Returns (ok, error)."""
    deadline = time.time() + timeout
    last = None
    while time.time() < deadline:
        try:
            resp = requests.get(url, timeout=5)
            if resp.status_code == 200:
                return True, None
            last = f"HTTP {resp.status_code}"
        except requests.RequestException as e:
            last = str(e)
        time.sleep(interval)
    return False, f"timeout after {timeout}s ({last})"


# Console output that never means the app is broken.
NOISE = [
    "favicon", "Warning:", "DevTools", "Download the React",
    "ReactDOM.render", "StrictMode", "[HMR]", "[vite]",
    "hot update", "connecting", "react-refresh",
    "net::ERR_", "Failed to load resource",
    "Cross-Origin", "Content-Security-Policy",
]
# ...and what does.
SIGNALS = [
    "is not defined", "is not a function",
    "Cannot read prop", "Cannot read properties",
    "SyntaxError", "ReferenceError", "TypeError",
    "Failed to resolve import", "does not provide an export",
]


def blocking_console_errors(messages) -> list:
    return [m for m in messages
            if not any(n.lower() in m.lower() for n in NOISE)
            and any(s in m for s in SIGNALS)]


_OVERLAY_JS = """() => {
    const ov = document.querySelector('vite-error-overlay');
    if (ov && ov.shadowRoot) {
        const el = ov.shadowRoot.querySelector('.message-body,.message,pre,.err-message');
        return el ? el.textContent.trim().slice(0,600)
                  : ov.shadowRoot.textContent.trim().slice(0,600);
    }
    return '';
}"""

_VISIBLE_JS = """() => {
    for (const s of ['#root *', '#app *', 'body > div *', 'canvas', 'svg']) {
        for (const el of document.querySelectorAll(s)) {
            const r = el.getBoundingClientRect();
            if (r.width > 5 && r.height > 5) return true;
        }
    }
    return false;
}"""


class PreviewChecker:
    """Headless Chromium smoke test of a running preview."""

    def __init__(self, url: str, screenshot=None):
        self.url        = url
        self.screenshot = screenshot

    def check(self, server_timeout: float = 30) -> list:
        log.info(f"⏳ Waiting for preview at {self.url}...")
        ok, err = wait_for_server(self.url, timeout=server_timeout)
        if not ok:
            log.warning(f"❌ Preview not reachable: {err}")
            return [DetectedError("browser", "error", f"Server not reachable: {err}")]
        log.info("✅ HTTP 200 — preview is serving")
        return self._browse()

    def _browse(self) -> list:
        from playwright.sync_api import sync_playwright, TimeoutError as PWTimeout

        problems, console = [], []

        def problem(msg):
            log.warning(f"❌ {msg}")
            problems.append(DetectedError("browser", "error", msg))

        try:
            with sync_playwright() as pw:
                browser = pw.chromium.launch(headless=True)
                page = browser.new_context(viewport={"width": 1280, "height": 720}).new_page()
                page.on("console", lambda m: console.append(m.text) if m.type == "error" else None)
                page.on("pageerror", lambda e: console.append(f"PageError: {e}"))

                # "load", not "networkidle": the HMR socket never goes idle.
                try:
                    resp = page.goto(self.url, timeout=30000, wait_until="load")
                except PWTimeout:
                    problem("Page load timeout — the dev server may still be compiling")
                    browser.close()
                    return problems
                if resp and resp.status >= 400:
                    problem(f"Page returned HTTP {resp.status}")
                    browser.close()
                    return problems

                rendered = False
                for sel in ["#root > *", "#app > *", "canvas", "svg", "main"]:
                    try:
                        page.wait_for_selector(sel, timeout=8000)
                        rendered = True
                        break
                    except PWTimeout:
                        continue
                if not rendered:
                    problem("App never rendered — likely a compile or runtime error")

                overlay = page.evaluate(_OVERLAY_JS) or ""
                if len(overlay) > 15:
                    problem(f"Vite compile error: {overlay[:500]}")

                if rendered and not page.evaluate(_VISIBLE_JS):
                    if len(page.inner_text("body").strip()) < 10:
                        problem("Page appears completely blank — nothing rendered")

                for msg in blocking_console_errors(console)[:5]:
                    problem(f"Console error: {msg[:160]}")

                if self.screenshot:
                    page.screenshot(path=str(self.screenshot), full_page=False)
                    log.info(f"📸 Screenshot saved → {self.screenshot}")
                browser.close()
        except Exception as e:
            problem(f"Playwright runtime error: {e}")

        if not problems:
            log.info("🎉 Preview looks healthy")
        return problems
