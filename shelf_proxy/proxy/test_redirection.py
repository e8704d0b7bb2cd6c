import pytest

from shelf_proxy.proxy.redirection import needs_redirection


class TestNeedsRedirection:
    """Single-page-application fallback detection."""

    @pytest.mark.parametrize("path", ["about", "", "index", "a/b", "app.js"])
    def test_path_without_leading_slash(self, path):
        assert needs_redirection(path) is False

    @pytest.mark.parametrize("path", ["/about", "/settings", "/x", "/user-profile"])
    def test_single_segment_without_dot(self, path):
        assert needs_redirection(path) is True

    @pytest.mark.parametrize("path", ["/a.b", "/app.js", "/index.html", "/.hidden"])
    def test_single_segment_with_extension(self, path):
        assert needs_redirection(path) is False

    @pytest.mark.parametrize("path", ["/a/b", "/docs/intro", "/a/", "//a"])
    def test_multiple_segments(self, path):
        assert needs_redirection(path) is False

    def test_root_path(self):
        assert needs_redirection("/") is False
