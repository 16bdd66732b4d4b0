from types import SimpleNamespace

import pytest


class FakeElement:
    def __init__(self, text="", **attrs):
        self.text = text
        self.attrs = {k.replace("_", "-"): v for k, v in attrs.items()}


class FakePage:
    """
    In-memory stand-in for a live page.

    ``elements`` maps selectors to FakeElement; ``hooks`` maps (action, selector)
    to a callable run after the interaction, which may add or remove elements.
    """

    def __init__(self, elements=None, query_errors=None, action_errors=None, hooks=None, goto_error=None):
        self.elements = dict(elements or {})
        self.query_errors = dict(query_errors or {})
        self.action_errors = dict(action_errors or {})
        self.hooks = dict(hooks or {})
        self.goto_error = goto_error
        self.visited = []
        self.actions = []
        self.attribute_queries = []
        self.closed = False

    def goto(self, url):
        if self.goto_error:
            raise self.goto_error
        self.visited.append(url)

    def query_selector(self, selector):
        if selector in self.query_errors:
            raise self.query_errors[selector]
        return self.elements.get(selector)

    def get_attribute(self, handle, name):
        self.attribute_queries.append(name)
        return handle.attrs.get(name)

    def text_content(self, handle):
        self.attribute_queries.append("#text")
        return handle.text

    def _act(self, action, selector, value=None):
        if (action, selector) in self.action_errors:
            raise self.action_errors[(action, selector)]
        if selector not in self.elements:
            raise TimeoutError(f"Timeout 10000ms exceeded waiting for {selector}")
        self.actions.append((action, selector, value))
        hook = self.hooks.get((action, selector))
        if hook:
            hook(self)

    def click(self, selector):
        self._act("click", selector)

    def fill(self, selector, value):
        self._act("fill", selector, value)

    def hover(self, selector):
        self._act("hover", selector)

    def select_option(self, selector, value):
        self._act("select", selector, value)

    def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page_factory, open_error=None, on_open=None):
        self.page_factory = page_factory
        self.open_error = open_error
        self.on_open = on_open
        self.pages = []

    def open_page(self):
        if self.open_error:
            raise self.open_error
        page = self.page_factory()
        self.pages.append(page)
        if self.on_open:
            self.on_open(page)
        return page


@pytest.fixture
def element():
    return FakeElement


@pytest.fixture
def make_page():
    return FakePage


@pytest.fixture
def make_browser():
    return FakeBrowser


@pytest.fixture
def login_page_factory():
    """Login form whose welcome banner only exists after the submit click."""

    def reveal_welcome(page):
        page.elements["#welcome"] = FakeElement(text="Welcome, alice", id="welcome")

    def factory():
        return FakePage(
            elements={
                "#user": FakeElement(id="user"),
                "#pass": FakeElement(id="pass"),
                "#submit": FakeElement(text="Log in", id="submit", data_testid="login-btn"),
            },
            hooks={("click", "#submit"): reveal_welcome},
        )

    return factory


class StubCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def llm_client():
    def build(content=None, error=None):
        completions = StubCompletions(content=content, error=error)
        return SimpleNamespace(chat=SimpleNamespace(completions=completions))

    return build
