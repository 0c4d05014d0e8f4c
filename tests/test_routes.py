"""Tests for route synthesis and rule compilation."""

from __future__ import annotations

import re

import pytest

from fnpack.errors import RouteError
from fnpack.routes import (
    RouteSynthesizer,
    compile_source,
    expand_routes,
    fallback_destination,
    transform_rules,
)


def test_fallback_prefers_200_document(project_builder) -> None:
    project_builder.static({"index.html": "", "200.html": ""})

    assert fallback_destination(project_builder.root / "web/dist") == "/200"


def test_fallback_defaults_to_index(project_builder) -> None:
    project_builder.static({"index.html": ""})

    assert fallback_destination(project_builder.root / "web/dist") == "/index"
    assert fallback_destination(project_builder.root / "missing") == "/index"


def test_synthesize_emits_single_catch_all(project_builder) -> None:
    project_builder.static({"200.html": ""})

    rules = RouteSynthesizer().synthesize(project_builder.root / "web/dist")

    assert len(rules) == 1
    rule = rules[0]
    assert rule.source == "/(.*)"
    assert rule.destination == "/200"
    assert rule.clean_urls is True
    assert rule.trailing_slash is False
    assert re.match(rule.src, "/users/42/edit")


def test_expand_routes_orders_rewrites_after_filesystem(project_builder) -> None:
    rules = RouteSynthesizer().synthesize(project_builder.root / "web/dist")

    routes = expand_routes(rules)

    handle_index = routes.index({"handle": "filesystem"})
    assert routes[-1] == {"src": rules[0].src, "dest": "/index", "check": True}
    assert handle_index == len(routes) - 2
    redirects = routes[:handle_index]
    assert redirects and all(route["status"] == 308 for route in redirects)
    trailing = redirects[-1]
    assert re.match(trailing["src"], "/about/")
    assert not re.match(trailing["src"], "/about")


def test_expand_routes_without_rules_only_hands_off_to_filesystem() -> None:
    assert expand_routes([]) == [{"handle": "filesystem"}]


def test_compile_source_handles_parameters() -> None:
    pattern, params = compile_source("/users/:id/files/:path*")

    assert params == ["id", "path"]
    match = re.match(pattern, "/users/42/files/a/b.txt")
    assert match is not None
    assert match.groups() == ("42", "a/b.txt")
    assert re.match(pattern, "/users/42/files/a.txt.bak")
    assert not re.match(pattern, "/users/42")


def test_compile_source_escapes_literals() -> None:
    pattern, _ = compile_source("/feed.xml")

    assert re.match(pattern, "/feed.xml")
    assert not re.match(pattern, "/feedAxml")


@pytest.mark.parametrize("source", ["no-slash", "/(unclosed", "/closed)", "/:", "/([)"])
def test_compile_source_rejects_malformed_sources(source: str) -> None:
    with pytest.raises(RouteError):
        compile_source(source)


@pytest.mark.parametrize(
    "rewrite",
    [
        {"source": "/(.*)", "destination": "relative"},
        {"source": "/(.*)", "destination": "/$2"},
        {"source": "/:id", "destination": "/:slug"},
        {"source": "/(.*)"},
    ],
)
def test_transform_rules_rejects_invalid_destinations(rewrite) -> None:
    with pytest.raises(RouteError):
        transform_rules([rewrite], clean_urls=True, trailing_slash=False)


def test_transform_rules_accepts_references() -> None:
    rules = transform_rules(
        [
            {"source": "/blog/:slug", "destination": "/posts/:slug"},
            {"source": "/docs/(.*)", "destination": "https://docs.example.com/$1"},
        ],
        clean_urls=False,
        trailing_slash=True,
    )

    assert [rule.destination for rule in rules] == [
        "/posts/:slug",
        "https://docs.example.com/$1",
    ]
    routes = expand_routes(rules)
    assert routes[0]["headers"]["Location"] == "/$1/"
