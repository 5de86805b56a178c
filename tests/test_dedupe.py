"""
Tests for merging result groups into a candidate set.
"""

from jobrecs.dedupe import merge_candidates


class TestMergeCandidates:
    """Test first-seen-wins merging."""

    def test_earlier_group_wins(self):
        groups = [
            ("job_type", [{"id": "a", "title": "first"}]),
            ("industry", [{"id": "a", "title": "second"}, {"id": "b", "title": "b"}]),
        ]
        bag = merge_candidates(groups)

        assert list(bag) == ["a", "b"]
        assert bag["a"].title == "first"

    def test_seed_excluded(self):
        groups = [("job_type", [{"id": "seed"}, {"id": "other"}])]
        bag = merge_candidates(groups, exclude_id="seed")
        assert list(bag) == ["other"]

    def test_numeric_ids_normalised(self):
        groups = [("job_type", [{"id": 7}]), ("tools", [{"id": "7", "title": "dup"}])]
        bag = merge_candidates(groups, exclude_id="8")

        assert list(bag) == ["7"]
        assert bag["7"].title == "(untitled)"

    def test_records_without_id_skipped(self):
        groups = [("fallback", [{"title": "orphan"}, {"id": "", "title": "blank"}, {"id": "ok"}])]
        assert list(merge_candidates(groups)) == ["ok"]

    def test_insertion_order_follows_groups(self):
        groups = [
            ("job_type", [{"id": "c"}, {"id": "a"}]),
            ("languages", [{"id": "b"}, {"id": "c"}]),
        ]
        assert list(merge_candidates(groups)) == ["c", "a", "b"]

    def test_empty_groups(self):
        assert merge_candidates([]) == {}
