"""
Tests for the jobrecs command line.
"""

import json

import pytest

from jobrecs import __version__
from jobrecs.app import main


@pytest.fixture
def listings_file(tmp_path, listings):
    path = tmp_path / "listings.json"
    serialisable = [
        {**r, "updated_at": r["updated_at"].isoformat()} for r in listings
    ]
    path.write_text(json.dumps(serialisable))
    return path


@pytest.fixture
def loaded_db(tmp_path, listings_file):
    db_path = tmp_path / "listings.db"
    main(["load", "--input", str(listings_file), "--db", str(db_path)])
    return db_path


class TestLoad:
    def test_load_reports_count(self, tmp_path, listings_file, capsys):
        db_path = tmp_path / "out" / "listings.db"
        main(["load", "--input", str(listings_file), "--db", str(db_path)])

        assert "Loaded 5 listings" in capsys.readouterr().out
        assert db_path.exists()

    def test_missing_input(self, tmp_path):
        with pytest.raises(SystemExit, match="Input file not found"):
            main(["load", "--input", str(tmp_path / "nope.json"), "--db", str(tmp_path / "x.db")])

    def test_listing_without_id(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"title": "no id"}]))

        with pytest.raises(SystemExit, match="Invalid listing"):
            main(["load", "--input", str(path), "--db", str(tmp_path / "x.db")])


class TestRecommend:
    def test_by_id(self, loaded_db, capsys):
        main(["recommend", "--id", "m1", "--db", str(loaded_db), "--k", "2"])

        out = capsys.readouterr().out
        assert "Recommended listings (2):" in out
        assert "ID: m1" not in out
        assert "ID: m2" in out

    def test_from_seed_file(self, tmp_path, loaded_db, capsys):
        seed = tmp_path / "seed.json"
        seed.write_text(json.dumps({"job_type": "Frontend", "industry": "Retail"}))

        main(["recommend", "--seed", str(seed), "--db", str(loaded_db)])

        out = capsys.readouterr().out
        assert "ID: m3" in out
        assert "ID: m5" in out

    def test_no_matches(self, tmp_path, loaded_db, capsys):
        seed = tmp_path / "seed.json"
        seed.write_text(json.dumps({"job_type": "Astronaut"}))

        main(["recommend", "--seed", str(seed), "--db", str(loaded_db)])

        assert "No similar listings found." in capsys.readouterr().out

    def test_unknown_id(self, loaded_db):
        with pytest.raises(SystemExit, match="Listing not found"):
            main(["recommend", "--id", "zzz", "--db", str(loaded_db)])

    def test_missing_database(self, tmp_path):
        with pytest.raises(SystemExit, match="Database not found"):
            main(["recommend", "--id", "m1", "--db", str(tmp_path / "none.db")])

    def test_negative_k(self, loaded_db):
        with pytest.raises(SystemExit, match="--k"):
            main(["recommend", "--id", "m1", "--db", str(loaded_db), "--k", "-1"])


class TestListAndVersion:
    def test_list(self, loaded_db, capsys):
        main(["list", "--db", str(loaded_db)])

        out = capsys.readouterr().out
        assert "Found 5 listings" in out
        assert "ID: m1" in out
        assert "Languages: Go, Python" in out

    def test_version(self, capsys):
        main(["--version"])
        assert capsys.readouterr().out.strip() == __version__
