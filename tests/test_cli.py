import pytest

import run as cli
from cafe_directory.cache import KeyValueStore
from cafe_directory.catalog import save_places
from cafe_directory.models import Place
from cafe_directory.pipeline import PipelineResult


@pytest.fixture
def store_path(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "load_env", lambda *args, **kwargs: None)
    path = str(tmp_path / "store.db")
    store = KeyValueStore(path)
    save_places(
        store,
        [
            Place(id="1001", name="스타벅스 춘천명동점", longitude=127.7296, latitude=37.8813,
                  region_label="조운동", brand="chain"),
            Place(id="1002", name="카페 소양", longitude=127.7354, latitude=37.8866,
                  phone="033-123-4567", region_label="근화동"),
            Place(id="2002", name="경계 카페", longitude=127.905, latitude=37.9, region_label=""),
        ],
    )
    store.close()
    return path


def test_list_applies_query_string(store_path, capsys):
    code = cli.main(["--list", "--store-path", store_path, "--query-string", "?brand=chain"])
    out = capsys.readouterr().out

    assert code == 0
    assert "(1 of 3 places)" in out
    assert "스타벅스 춘천명동점" in out
    assert "카페 소양" not in out


def test_list_exports_csv(store_path, tmp_path, capsys):
    csv_path = tmp_path / "export.csv"
    code = cli.main(["--list", "--store-path", store_path, "--query-string", "sort=name", "--csv", str(csv_path)])

    assert code == 0
    lines = csv_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert lines[0].startswith('"경계 카페"')


def test_click_and_favorite_change_ranking(store_path, capsys):
    assert cli.main(["--click", "2002", "--store-path", store_path]) == 0
    assert cli.main(["--toggle-favorite", "1002", "--store-path", store_path]) == 0
    capsys.readouterr()

    cli.main(["--list", "--store-path", store_path])
    rows = [line for line in capsys.readouterr().out.splitlines() if "\t" in line]

    assert "카페 소양" in rows[0]
    assert rows[0].startswith("*")
    assert "경계 카페" in rows[1]


def test_show_prints_links(store_path, capsys):
    assert cli.main(["--show", "1002", "--store-path", store_path]) == 0
    out = capsys.readouterr().out
    assert "tel:0331234567" in out
    assert "https://map.kakao.com/link/to/" in out
    assert "region: 근화동" in out


def test_show_unknown_key_fails(store_path, capsys):
    assert cli.main(["--show", "nope", "--store-path", store_path]) == 1
    assert "Place not found" in capsys.readouterr().err


def test_regions_list_catch_all_last(store_path, capsys):
    assert cli.main(["--regions", "--store-path", store_path]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[-1].startswith("기타\t1")


def test_collect_requires_api_key(store_path, monkeypatch, capsys):
    monkeypatch.delenv("KAKAO_REST_API_KEY", raising=False)
    assert cli.main(["--collect", "--store-path", store_path]) == 1
    assert "KAKAO_REST_API_KEY" in capsys.readouterr().err


def test_collect_runs_pipeline(store_path, tmp_path, monkeypatch, capsys):
    seen = {}

    async def fake_run(**kwargs):
        seen.update(kwargs)
        return PipelineResult(places=[], summary={})

    monkeypatch.setenv("KAKAO_REST_API_KEY", "dummy")
    monkeypatch.setattr(cli, "run", fake_run)

    code = cli.main(["--collect", "--store-path", store_path, "--out", str(tmp_path / "out"), "--rows", "2"])

    assert code == 0
    assert seen["api_key"] == "dummy"
    assert seen["rows"] == 2
    assert seen["cols"] is None


def test_collect_errors_are_reported(store_path, monkeypatch, capsys):
    async def failing_run(**kwargs):
        raise ValueError("Bounds are inverted")

    monkeypatch.setenv("KAKAO_REST_API_KEY", "dummy")
    monkeypatch.setattr(cli, "run", failing_run)

    assert cli.main(["--collect", "--store-path", store_path]) == 1
    assert "Error: Bounds are inverted" in capsys.readouterr().err


def test_preflight_reports_missing_key(monkeypatch, capsys):
    monkeypatch.setattr(cli, "load_env", lambda *args, **kwargs: None)
    monkeypatch.delenv("KAKAO_REST_API_KEY", raising=False)
    assert cli.main(["--preflight"]) == 1
    assert "KAKAO_REST_API_KEY length: 0" in capsys.readouterr().out


@pytest.mark.parametrize("mode", ["--show", "--click", "--toggle-favorite"])
def test_empty_key_is_not_found_and_never_collects(store_path, monkeypatch, capsys, mode):
    async def unexpected_run(**kwargs):
        raise AssertionError("collection must not start")

    monkeypatch.setenv("KAKAO_REST_API_KEY", "dummy")
    monkeypatch.setattr(cli, "run", unexpected_run)

    assert cli.main([mode, "", "--store-path", store_path]) == 1
    assert "Place not found" in capsys.readouterr().err
