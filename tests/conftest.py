"""Shared fixtures for flow replay tests."""

import pytest

from flowreplay.adapters.document import DocumentContext
from flowreplay.flows.runner import FlowRunner, RunOptions
from flowreplay.flows.transport import CollectingReporter
from flowreplay.locators.resolver import LocatorResolver, ResolverConfig


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "smoke: mark test as smoke test (fast, critical path)"
    )
    config.addinivalue_line(
        "markers", "browser: mark test as requiring an installed browser"
    )


LOGIN_PAGE = """
<html>
  <head><title>Sign in</title></head>
  <body>
    <h1 id="title">Welcome back</h1>
    <form id="login-form" action="/session">
      <label for="email">Email</label>
      <input id="email" type="email" name="email" placeholder="you@example.com">
      <label>Password <input type="password" name="password"></label>
      <button type="submit" data-testid="sign-in" class="btn btn-primary">Sign in</button>
    </form>
    <a href="/help">Need help?</a>
  </body>
</html>
"""

KOREAN_FORM = """
<form>
  <label>이름</label>
  <input type="text">
  <label>설명</label>
  <input type="text">
</form>
"""


@pytest.fixture
def login_html():
    """Login page markup."""
    return LOGIN_PAGE


@pytest.fixture
def korean_form_html():
    """Form whose fields are only distinguishable by their Korean labels."""
    return KOREAN_FORM


@pytest.fixture
def login_context():
    """Document context loaded with the login page."""
    return DocumentContext(LOGIN_PAGE, url="https://example.com/login")


@pytest.fixture
def fast_config():
    """Resolver config with short timeouts for tests."""
    return ResolverConfig(timeout_ms=300, poll_interval_ms=20)


@pytest.fixture
def resolver(fast_config):
    """Scored resolver with fast polling."""
    return LocatorResolver(fast_config)


@pytest.fixture
def reporter():
    """Reporter that keeps every progress message."""
    return CollectingReporter()


@pytest.fixture
def run_options():
    """Run options with short timeouts for tests."""
    return RunOptions(timeout_ms=300, navigation_timeout_ms=300)


@pytest.fixture
def runner(resolver, reporter):
    """Flow runner wired to the fast resolver and collecting reporter."""
    return FlowRunner(resolver=resolver, reporter=reporter)
