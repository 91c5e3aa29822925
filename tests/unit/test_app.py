"""
Unit tests for the App dispatcher and the Extra helpers.
"""

import re
from pathlib import Path

import pytest

from routekit.app import App, Extra, normalize_result, register_route
from routekit.errors import HandlerFailure, ResourceNotFound
from routekit.http.request import Request
from routekit.http.response import Response
from routekit.http.router import ANY, template
from routekit.templates import TemplateEngine


@pytest.fixture
def app(tmp_path: Path) -> App:
    return App(base_dir=tmp_path)


def call(app: App, method: str, path: str) -> Response:
    return app.handle(Request(method, path))


class TestDispatch:
    def test_string_result_becomes_body(self, app):
        register_route(app, "GET", "/", lambda req, res, extra: "hello")

        response = call(app, "GET", "/")
        assert response.status == 200
        assert response.body == b"hello"

    def test_string_result_resets_status(self, app):
        def handler(request, response, extra):
            response.status = 201
            response.set_header("X-Trace", "1")
            return "created"

        app.add_route("GET", "/", handler)
        response = call(app, "GET", "/")

        assert response.status == 200
        assert response.body == b"created"
        assert response.get_header("X-Trace") == "1"

    def test_string_result_keeps_headers_and_cookies(self, app):
        def handler(request, response, extra):
            response.set_header("X-Trace", "1")
            response.set_cookie("c", "v")
            return "body"

        app.add_route("GET", "/", handler)
        response = call(app, "GET", "/")

        assert response.get_header("X-Trace") == "1"
        assert response.cookies[0].name == "c"

    def test_response_result_replaces_working_response(self, app):
        app.add_route("GET", "/", lambda req, res, extra: Response(status=201, body="new"))

        response = call(app, "GET", "/")
        assert response.status == 201
        assert response.body == b"new"

    def test_params_by_pattern_kind(self, app):
        seen = {}

        def capture(name):
            def handler(request, response, extra):
                seen[name] = extra.params
                return ""
            return handler

        app.add_route("GET", "/literal", capture("literal"))
        app.add_route("GET", re.compile(r"/re/(\w+)/(\d+)"), capture("regex"))
        app.add_route("GET", template("/object/:id"), capture("template"))

        call(app, "GET", "/literal")
        call(app, "GET", "/re/abc/7")
        call(app, "GET", "/object/42")

        assert seen == {"literal": None, "regex": ["abc", "7"], "template": {"id": "42"}}

    def test_any_route(self, app):
        @app.any("/any")
        def anything(request, response, extra):
            return request.method

        assert len(app.router) == 1
        assert call(app, "GET", "/any").body == b"GET"
        assert call(app, "POST", "/any").body == b"POST"

    def test_decorators(self, app):
        @app.get("/g")
        def g(request, response, extra):
            return "g"

        @app.post("/p")
        def p(request, response, extra):
            return "p"

        assert call(app, "GET", "/g").body == b"g"
        assert call(app, "POST", "/p").body == b"p"
        assert call(app, "POST", "/g").status == 404
        assert [r.method for r in app.router.routes] == ["GET", "POST"]

    def test_route_not_found(self, app):
        response = call(app, "GET", "/missing")

        assert response.status == 404
        assert b"/missing" in response.body

    def test_middleware_observes_404(self, app):
        def rewrite(request, response, next):
            response = next(request, response)
            if response.status == 404:
                response.set_body("custom not found")
            return response

        app.use(rewrite)

        response = call(app, "GET", "/nope")
        assert response.status == 404
        assert response.body == b"custom not found"

    def test_handler_exception_becomes_500(self, app):
        def boom(request, response, extra):
            raise RuntimeError("kaboom")

        app.add_route("GET", "/boom", boom)
        response = call(app, "GET", "/boom")

        assert response.status == 500
        assert response.body == b"kaboom"

    def test_handler_failure_keeps_its_status(self, app):
        def unavailable(request, response, extra):
            raise HandlerFailure("try later", status_code=503)

        app.add_route("GET", "/", unavailable)

        assert call(app, "GET", "/").status == 503

    def test_middleware_exception_becomes_500(self, app):
        def broken(request, response, next):
            raise KeyError("session")

        app.use(broken)
        app.add_route("GET", "/", lambda req, res, extra: "ok")

        assert call(app, "GET", "/").status == 500

    def test_unsupported_result_type(self, app):
        app.add_route("GET", "/", lambda req, res, extra: 42)

        response = call(app, "GET", "/")
        assert response.status == 500
        assert b"int" in response.body

    def test_freeze_locks_setup(self, app):
        app.add_route("GET", "/", lambda req, res, extra: "ok")
        app.freeze()

        with pytest.raises(RuntimeError):
            app.add_route("GET", "/late", lambda req, res, extra: "late")
        with pytest.raises(RuntimeError):
            app.use(lambda req, res, nxt: nxt(req, res))
        assert app(Request("GET", "/")).body == b"ok"

    def test_use_works_as_decorator(self, app):
        @app.use
        def no_cache(request, response, next):
            response = next(request, response)
            response.set_header("Cache-Control", "no-store")
            return response

        assert callable(no_cache)
        assert call(app, "GET", "/").get_header("Cache-Control") == "no-store"


class TestNormalizeResult:
    def test_none_keeps_working_response(self):
        response = Response(status=202)

        assert normalize_result(None, response) is response

    def test_bytes(self):
        assert normalize_result(b"raw", Response()).body == b"raw"

    def test_rejects_other_types(self):
        with pytest.raises(HandlerFailure):
            normalize_result({"a": 1}, Response())


class TestExtraFile:
    def make_extra(self, app: App) -> Extra:
        return Extra(app, Request("GET", "/"), Response(), None)

    def test_cached_read_is_not_repeated(self, app, tmp_path, monkeypatch):
        (tmp_path / "page.html").write_text("<h1>v1</h1>", encoding="utf-8")
        extra = self.make_extra(app)

        reads = []
        original = Path.read_text

        def counting_read_text(self, *args, **kwargs):
            reads.append(self)
            return original(self, *args, **kwargs)

        monkeypatch.setattr(Path, "read_text", counting_read_text)

        first = extra.file("page.html")
        second = extra.file("page.html")

        assert first == second == "<h1>v1</h1>"
        assert len(reads) == 1
        assert "_file:page.html" in app.cache

    def test_cache_survives_file_change(self, app, tmp_path):
        path = tmp_path / "page.html"
        path.write_text("v1", encoding="utf-8")
        extra = self.make_extra(app)

        assert extra.file("page.html") == "v1"
        path.write_text("v2", encoding="utf-8")
        assert extra.file("page.html") == "v1"
        assert extra.file("page.html", use_cache=False) == "v2"

    def test_uncached_read_always_rereads(self, app, tmp_path):
        path = tmp_path / "data.txt"
        extra = self.make_extra(app)

        path.write_text("one", encoding="utf-8")
        assert extra.file("data.txt", use_cache=False) == "one"
        path.write_text("two", encoding="utf-8")
        assert extra.file("data.txt", use_cache=False) == "two"
        assert len(app.cache) == 0

    def test_absolute_path(self, app, tmp_path):
        path = tmp_path / "abs.txt"
        path.write_text("absolute", encoding="utf-8")

        assert self.make_extra(app).file(str(path)) == "absolute"

    def test_missing_file(self, app):
        with pytest.raises(ResourceNotFound) as exc_info:
            self.make_extra(app).file("nope.txt")
        assert exc_info.value.path == "nope.txt"
        assert isinstance(exc_info.value, LookupError)

    def test_missing_file_in_handler_becomes_500(self, app):
        app.add_route("GET", "/", lambda req, res, extra: extra.file("gone.html"))

        response = call(app, "GET", "/")
        assert response.status == 500
        assert b"gone.html" in response.body

    def test_handler_may_catch_missing_file(self, app):
        def fallback(request, response, extra):
            try:
                return extra.file("gone.html")
            except ResourceNotFound:
                response.status = 404
                return response.set_body("no such page")

        app.add_route("GET", "/", fallback)

        assert call(app, "GET", "/").status == 404


class TestExtraTemplate:
    def make_extra(self, app: App) -> Extra:
        return Extra(app, Request("GET", "/"), Response(), None)

    def test_format_engine(self, app, tmp_path):
        (tmp_path / "hello.txt").write_text("Hello, {name}!", encoding="utf-8")

        result = self.make_extra(app).template("format", "hello.txt", {"name": "Ada"})

        assert result == "Hello, Ada!"
        assert "_format:hello.txt" in app.cache

    def test_string_template_engine(self, app, tmp_path):
        (tmp_path / "hello.tpl").write_text("Hello, $name!", encoding="utf-8")

        assert self.make_extra(app).template("template", "hello.tpl", {"name": "Bob"}) == "Hello, Bob!"

    def test_compiled_once(self, app, tmp_path):
        compiled = []

        class CountingEngine(TemplateEngine):
            def compile(self, source):
                compiled.append(source)
                return source.upper()

            def render(self, compiled_source, context):
                return compiled_source + context.get("suffix", "")

        app.add_engine("upper", CountingEngine())
        (tmp_path / "t.txt").write_text("abc", encoding="utf-8")
        extra = self.make_extra(app)

        assert extra.template("upper", "t.txt", {"suffix": "1"}) == "ABC1"
        assert extra.template("upper", "t.txt", {"suffix": "2"}) == "ABC2"
        assert compiled == ["abc"]
        # the template source is not cached as a plain file
        assert "_file:t.txt" not in app.cache

    def test_unknown_engine(self, app):
        with pytest.raises(LookupError):
            self.make_extra(app).template("mustache", "x.html", {})

    def test_missing_template(self, app):
        with pytest.raises(ResourceNotFound):
            self.make_extra(app).template("format", "missing.txt", {})


class TestExtraRedirect:
    def test_redirect_in_handler(self, app):
        app.add_route("GET", "/old", lambda req, res, extra: extra.redirect("/new"))
        app.add_route(ANY, "/gone", lambda req, res, extra: extra.redirect("/elsewhere", 301))

        found = call(app, "GET", "/old")
        moved = call(app, "DELETE", "/gone")

        assert (found.status, found.get_header("Location")) == (302, "/new")
        assert (moved.status, moved.get_header("Location")) == (301, "/elsewhere")
