"""
Unit tests for MultiDict and Headers.
"""

from routekit.http.multidict import Headers, MultiDict


class TestMultiDict:
    def test_values_are_lists(self):
        data = MultiDict([("a", "1"), ("a", "2"), ("b", "3")])

        assert data["a"] == ["1", "2"]
        assert data["b"] == ["3"]
        assert list(data) == ["a", "b"]

    def test_first_and_absent(self):
        data = MultiDict([("test", "testing1"), ("test", "testing2")])

        assert data.first("test") == "testing1"
        assert data.first("missing") is None
        assert data.first("missing", "x") == "x"
        assert data.get_all("missing") == []

    def test_setitem_scalar_and_list(self):
        data = MultiDict()
        data["a"] = "1"
        data["b"] = ["2", "3"]

        assert data["a"] == ["1"]
        assert data["b"] == ["2", "3"]

    def test_setting_empty_list_removes_key(self):
        data = MultiDict({"a": "1"})
        data["a"] = []

        assert "a" not in data
        assert len(data) == 0

    def test_getitem_returns_a_copy(self):
        data = MultiDict({"a": "1"})
        data["a"].append("2")

        assert data["a"] == ["1"]

    def test_multi_items_and_copy(self):
        data = MultiDict([("a", "1"), ("b", "2"), ("a", "3")])
        clone = data.copy()
        clone.add("a", "4")

        assert list(data.multi_items()) == [("a", "1"), ("a", "3"), ("b", "2")]
        assert data.get_all("a") == ["1", "3"]
        assert clone.get_all("a") == ["1", "3", "4"]

    def test_keys_are_case_sensitive(self):
        data = MultiDict({"Key": "1"})

        assert "key" not in data


class TestHeaders:
    def test_case_insensitive_lookup(self):
        headers = Headers()
        headers.add("Content-Type", "text/plain")

        assert headers["content-type"] == ["text/plain"]
        assert "CONTENT-TYPE" in headers
        assert headers.get_first("Content-type") == "text/plain"

    def test_first_spelling_is_kept(self):
        headers = Headers()
        headers.add("X-Request-ID", "1")
        headers.add("x-request-id", "2")

        assert list(headers) == ["X-Request-ID"]
        assert list(headers.multi_items()) == [("X-Request-ID", "1"), ("X-Request-ID", "2")]

    def test_set_replaces_all_values(self):
        headers = Headers([("Vary", "a"), ("vary", "b")])
        headers.set("VARY", "c")

        assert headers.get_all("vary") == ["c"]

    def test_non_string_key_is_not_contained(self):
        assert 1 not in Headers({"a": "b"})
