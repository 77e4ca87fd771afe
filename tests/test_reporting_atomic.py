from cafe_directory.reporting import atomic_write_text


def test_atomic_write_text(tmp_path):
    path = tmp_path / "atomic.txt"

    atomic_write_text(str(path), "first")
    assert path.read_text(encoding="utf-8") == "first"

    atomic_write_text(str(path), "두 번째")
    assert path.read_text(encoding="utf-8") == "두 번째"

    leftovers = [p for p in tmp_path.iterdir() if p.name != "atomic.txt"]
    assert not leftovers


def test_progress_timestamps_share_the_cache_clock():
    from cafe_directory import cache, reporting

    assert reporting.utc_now_iso is cache.utc_now_iso
