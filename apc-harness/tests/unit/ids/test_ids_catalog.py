from __future__ import annotations

from pathlib import Path

import httpx

from apc_harness.ids import CatalogValidator, collect_ids, merge_ids, read_id_file, write_id_file

URL = "https://play.google.com/store/apps/details?id={id}"


def _client(known: set[str], seen_agents: list[str]) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        seen_agents.append(request.headers.get("User-Agent", ""))
        app_id = request.url.params.get("id")
        if app_id == "com.flaky":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200 if app_id in known else 404)

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_catalog_validator_accepts_only_status_200() -> None:
    agents: list[str] = []
    validator = CatalogValidator(
        url_template=URL, client=_client({"com.booking", "com.facebook.orca"}, agents)
    )

    assert validator.is_valid("com.booking")
    assert not validator.is_valid("com.does.not.exist")
    assert not validator.is_valid("com.flaky")
    assert agents and all(a == "Mozilla/5.0" for a in agents)


def test_catalog_validator_follows_redirects() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "play.google.com":
            moved = f"https://store.example/apps?id={request.url.params['id']}"
            return httpx.Response(301, headers={"Location": moved})
        return httpx.Response(200 if request.url.params["id"] == "com.moved" else 404)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    validator = CatalogValidator(url_template=URL, client=client)

    assert validator.is_valid("com.moved")
    assert not validator.is_valid("com.gone")


def test_catalog_validator_default_client_follows_redirects(monkeypatch) -> None:
    seen: dict[str, object] = {}

    def fake_get(url, **kwargs):
        seen.update(kwargs, url=url)
        return httpx.Response(200)

    monkeypatch.setattr(httpx, "get", fake_get)
    assert CatalogValidator(url_template=URL, timeout_s=3.0).is_valid("com.a")
    assert seen["follow_redirects"] is True
    assert seen["timeout"] == 3.0
    assert seen["url"] == URL.format(id="com.a")


def test_read_id_file_skips_blank_lines_and_missing_files(tmp_path: Path) -> None:
    path = tmp_path / "my_ids.txt"
    path.write_text("com.a\n\n  com.b  \n", encoding="utf-8")
    assert read_id_file(path) == ["com.a", "com.b"]
    assert read_id_file(tmp_path / "missing.txt") == []
    assert read_id_file(None) == []


def test_merge_ids_keeps_first_occurrence_order() -> None:
    assert merge_ids(["com.b", "com.a"], ["com.a", " com.c ", ""]) == ["com.b", "com.a", "com.c"]


def test_collect_ids_merges_file_and_arguments_then_validates(tmp_path: Path) -> None:
    path = tmp_path / "ids.txt"
    path.write_text("com.a\ncom.bad\n", encoding="utf-8")
    agents: list[str] = []
    validator = CatalogValidator(url_template=URL, client=_client({"com.a", "com.c"}, agents))

    assert collect_ids(["com.c", "com.a"], path, validate=validator.is_valid) == ["com.a", "com.c"]
    assert collect_ids(["com.c"], path) == ["com.a", "com.bad", "com.c"]
    assert collect_ids(None, None) == []


def test_write_id_file_is_newline_joined(tmp_path: Path) -> None:
    path = write_id_file(tmp_path / "sub" / "ids.txt", ["com.a", "com.b"])
    assert path.read_text(encoding="utf-8") == "com.a\ncom.b"
