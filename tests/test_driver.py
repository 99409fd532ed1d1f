"""PlaywrightDriver adapter tests with stand-in Playwright objects."""

import pytest

from nocturne.driver import PlaywrightDriver, PlaywrightPage, PlaywrightSession
from nocturne.exceptions import DriverError


class StubResponse:
    def __init__(self, ok=True):
        self.ok = ok


class StubPage:
    def __init__(self):
        self.calls = []
        self.goto_error = None
        self.evaluate_error = None
        self.response = StubResponse()
        self.url = "about:blank"

    async def goto(self, url, **kwargs):
        self.calls.append(("goto", url, kwargs))
        if self.goto_error is not None:
            raise self.goto_error
        self.url = url
        return self.response

    async def evaluate(self, *args):
        self.calls.append(("evaluate",) + args)
        if self.evaluate_error is not None:
            raise self.evaluate_error
        return True

    async def set_input_files(self, selector, files):
        self.calls.append(("set_input_files", selector, files))


class StubContext:
    def __init__(self, log):
        self.log = log
        self.pages = []

    async def new_page(self):
        page = StubPage()
        self.pages.append(page)
        return page

    async def close(self):
        self.log.append("context.close")


class StubBrowser:
    def __init__(self, log):
        self.log = log
        self.context = StubContext(log)

    async def new_context(self):
        return self.context

    async def close(self):
        self.log.append("browser.close")


class StubChromium:
    def __init__(self, log, launch_error=None):
        self.log = log
        self.launch_error = launch_error
        self.launch_kwargs = None
        self.browser = StubBrowser(log)

    async def launch(self, **kwargs):
        self.launch_kwargs = kwargs
        if self.launch_error is not None:
            raise self.launch_error
        return self.browser


class StubPlaywright:
    def __init__(self, log, launch_error=None):
        self.log = log
        self.chromium = StubChromium(log, launch_error)

    async def stop(self):
        self.log.append("playwright.stop")


class StubPlaywrightManager:
    def __init__(self, playwright):
        self.playwright = playwright

    async def start(self):
        return self.playwright


@pytest.fixture
def make_driver():
    def _make(launch_error=None, **kwargs):
        log = []
        playwright = StubPlaywright(log, launch_error)
        driver = PlaywrightDriver(playwright_factory=lambda: StubPlaywrightManager(playwright), **kwargs)
        return driver, playwright, log
    return _make


# ============================================================
# PlaywrightPage
# ============================================================

class TestPlaywrightPage:

    @pytest.mark.asyncio
    async def test_open_reports_success(self):
        raw = StubPage()
        page = PlaywrightPage(raw, navigation_timeout_ms=1234)
        assert await page.open(" http://example.com ") == "success"
        assert raw.calls == [("goto", "http://example.com", {"timeout": 1234, "wait_until": "load"})]
        assert page.url == "http://example.com"

    @pytest.mark.asyncio
    async def test_open_reports_fail_for_error_status(self):
        raw = StubPage()
        raw.response = StubResponse(ok=False)
        assert await PlaywrightPage(raw).open("http://example.com/404") == "fail"

    @pytest.mark.asyncio
    async def test_open_without_response_is_success(self):
        raw = StubPage()
        raw.response = None
        assert await PlaywrightPage(raw).open("http://example.com/#top") == "success"

    @pytest.mark.asyncio
    async def test_open_wraps_driver_failures(self):
        raw = StubPage()
        cause = RuntimeError("net::ERR_NAME_NOT_RESOLVED at http://nowhere\nCall log: ...")
        raw.goto_error = cause
        with pytest.raises(DriverError) as excinfo:
            await PlaywrightPage(raw).open("http://nowhere")

        assert excinfo.value.operation == "open"
        assert excinfo.value.__cause__ is cause
        assert str(excinfo.value) == "open: net::ERR_NAME_NOT_RESOLVED at http://nowhere"

    @pytest.mark.asyncio
    async def test_open_requires_url(self):
        with pytest.raises(DriverError):
            await PlaywrightPage(StubPage()).open("  ")

    @pytest.mark.asyncio
    async def test_evaluate_passes_args_as_single_list(self):
        raw = StubPage()
        page = PlaywrightPage(raw)
        assert await page.evaluate("([a, b]) => a === b", "x", "y") is True
        await page.evaluate("() => 1")

        assert raw.calls == [
            ("evaluate", "([a, b]) => a === b", ["x", "y"]),
            ("evaluate", "() => 1"),
        ]

    @pytest.mark.asyncio
    async def test_evaluate_wraps_script_errors(self):
        raw = StubPage()
        raw.evaluate_error = RuntimeError("TypeError: element is null")
        with pytest.raises(DriverError) as excinfo:
            await PlaywrightPage(raw).evaluate("([s]) => document.querySelector(s).click()", "#x")
        assert excinfo.value.operation == "evaluate"

    @pytest.mark.asyncio
    async def test_upload_resolves_existing_file(self, tmp_path):
        upload = tmp_path / "report.txt"
        upload.write_text("hello", encoding="utf-8")
        raw = StubPage()
        await PlaywrightPage(raw).upload_file("#file", str(upload))

        assert raw.calls == [("set_input_files", "#file", str(upload.resolve()))]

    @pytest.mark.asyncio
    async def test_upload_missing_file_fails(self, tmp_path):
        raw = StubPage()
        with pytest.raises(DriverError) as excinfo:
            await PlaywrightPage(raw).upload_file("#file", str(tmp_path / "missing.txt"))
        assert excinfo.value.operation == "upload"
        assert raw.calls == []


# ============================================================
# PlaywrightDriver / PlaywrightSession
# ============================================================

class TestPlaywrightDriver:

    @pytest.mark.asyncio
    async def test_create_session_and_page(self, make_driver):
        driver, playwright, log = make_driver(headless=True, navigation_timeout_ms=999)
        session = await driver.create_session()
        page = await session.create_page()

        assert isinstance(session, PlaywrightSession)
        assert isinstance(page, PlaywrightPage)
        assert page.navigation_timeout_ms == 999
        assert playwright.chromium.launch_kwargs["headless"] is True
        assert playwright.chromium.launch_kwargs["chromium_sandbox"] is False

    @pytest.mark.asyncio
    async def test_close_tears_down_in_order(self, make_driver):
        driver, _, log = make_driver()
        session = await driver.create_session()
        await session.close()
        await session.close()

        assert log == ["context.close", "browser.close", "playwright.stop"]
        assert session.closed is True
        with pytest.raises(DriverError):
            await session.create_page()

    @pytest.mark.asyncio
    async def test_launch_failure_is_wrapped_and_cleaned_up(self, make_driver):
        driver, _, log = make_driver(launch_error=RuntimeError("Executable doesn't exist"))
        with pytest.raises(DriverError) as excinfo:
            await driver.create_session()

        assert excinfo.value.operation == "create_session"
        assert log == ["playwright.stop"]

    def test_channel_and_executable_from_env(self, monkeypatch):
        monkeypatch.setenv("NOCTURNE_BROWSER_CHANNEL", "chrome")
        monkeypatch.delenv("NOCTURNE_BROWSER_EXECUTABLE_PATH", raising=False)
        driver = PlaywrightDriver(headless=False)
        kwargs = driver._launch_kwargs()

        assert kwargs["channel"] == "chrome"
        assert kwargs["headless"] is False
        assert "executable_path" not in kwargs

    def test_executable_path_wins_over_channel(self, monkeypatch):
        monkeypatch.setenv("NOCTURNE_BROWSER_CHANNEL", "chrome")
        driver = PlaywrightDriver(executable_path="/opt/chromium/chrome")
        kwargs = driver._launch_kwargs()

        assert kwargs["executable_path"] == "/opt/chromium/chrome"
        assert "channel" not in kwargs

    def test_headless_from_env(self, monkeypatch):
        monkeypatch.setenv("NOCTURNE_HEADLESS", "false")
        assert PlaywrightDriver().headless is False
