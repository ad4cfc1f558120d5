#!/usr/bin/env python3
"""
Tests for the aggregation side of statter.py: categorization, the series,
contributor, file and word aggregators, and rankings/awards.
"""

import math
import pytest
from datetime import date, datetime, timedelta, timezone

from statter import (
    AnalysisConfig,
    CommitAwardsAggregator,
    CommitRecord,
    ContributorAggregator,
    ContributorIdentity,
    ContributorStats,
    FileCategorizer,
    FileCategory,
    FileChange,
    FileMetrics,
    FileMetricsAggregator,
    Granularity,
    LinearSeriesAggregator,
    RankingAndAwardsComputer,
    TimeSeriesAggregator,
    TopN,
    WordFrequencyAggregator,
    categorize,
    get_language,
    select_granularity,
    tokenize_message,
    word_cloud,
)

BASE = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_commit(sha, when=BASE, files=(), author="Alice", email="alice@example.com",
                message="update code"):
    changes = tuple(
        FileChange(path, added, deleted) for path, added, deleted in files
    )
    return CommitRecord(sha, author, email, when, message, changes)


def run(aggregator, commits):
    for commit in commits:
        aggregator.process_commit(commit)
    return aggregator.finalize()


# ============================================================================
# CATEGORIZATION TESTS
# ============================================================================


class TestCategorize:
    @pytest.mark.parametrize("path,expected", [
        ("tests/test_app.py", FileCategory.TEST),
        ("src/app.test.ts", FileCategory.TEST),
        ("src/__tests__/view.js", FileCategory.TEST),
        ("pkg/handler_test.go", FileCategory.TEST),
        ("test_main.py", FileCategory.TEST),
        ("src/app.py", FileCategory.APPLICATION),
        ("src/latest_news.py", FileCategory.APPLICATION),
        ("README.md", FileCategory.DOCUMENTATION),
        ("docs/guide.rst", FileCategory.DOCUMENTATION),
        ("package.json", FileCategory.BUILD),
        ("Dockerfile", FileCategory.BUILD),
        ("config/settings.yaml", FileCategory.BUILD),
        ("assets/logo.png", FileCategory.OTHER),
        ("LICENSE", FileCategory.OTHER),
    ])
    def test_default_tables(self, path, expected):
        assert categorize(path) is expected

    def test_test_marker_wins_over_extension(self):
        assert categorize("tests/fixtures/data.json") is FileCategory.TEST
        assert categorize("tests/README.md") is FileCategory.TEST

    def test_custom_tables(self):
        categorizer = FileCategorizer(
            extension_categories={".foo": FileCategory.APPLICATION},
            build_filenames=["Justfile"],
        )
        assert categorizer.categorize("x.foo") is FileCategory.APPLICATION
        assert categorizer.categorize("x.py") is FileCategory.OTHER
        assert categorizer.categorize("Justfile") is FileCategory.BUILD

    def test_categorizer_is_deterministic(self):
        categorizer = FileCategorizer()
        first = categorizer.categorize("src/app.py")
        assert categorizer.categorize("src/app.py") is first

    @pytest.mark.parametrize("path,language", [
        ("src/app.py", "Python"),
        ("web/index.TSX", "TypeScript"),
        ("Dockerfile", "Dockerfile"),
        ("build/Makefile", "Makefile"),
        ("data.unknownext", ".unknownext"),
        ("LICENSE", "Other"),
    ])
    def test_get_language(self, path, language):
        assert get_language(path) == language


# ============================================================================
# TIME SERIES TESTS
# ============================================================================


class TestGranularity:
    def test_single_day(self):
        assert select_granularity(date(2024, 1, 1), date(2024, 1, 1)) == (Granularity.DAY, 1)

    def test_fifty_days_is_daily(self):
        first = date(2024, 1, 1)
        assert select_granularity(first, first + timedelta(days=49))[0] is Granularity.DAY
        assert select_granularity(first, first + timedelta(days=50))[0] is Granularity.WEEK

    def test_weekly(self):
        assert select_granularity(date(2024, 1, 1), date(2024, 10, 1)) == (Granularity.WEEK, 1)

    def test_monthly(self):
        assert select_granularity(date(2023, 1, 1), date(2024, 3, 1)) == (Granularity.MONTH, 1)

    def test_long_history_widens_month_stride(self):
        granularity, stride = select_granularity(date(2014, 1, 1), date(2024, 1, 1))
        assert granularity is Granularity.MONTH
        assert stride == 3


class TestTimeSeriesAggregator:
    def test_empty(self):
        aggregator = TimeSeriesAggregator()
        assert run(aggregator, []) == []
        assert aggregator.granularity is None

    def test_contiguous_buckets_carry_cumulative_forward(self):
        commits = [
            make_commit("a", BASE, [("src/app.py", 10, 0)]),
            make_commit("b", BASE + timedelta(days=3), [("src/app.py", 4, 2)]),
        ]
        points = run(TimeSeriesAggregator(), commits)

        assert [p.bucket_start for p in points] == [
            date(2024, 1, 15), date(2024, 1, 16), date(2024, 1, 17), date(2024, 1, 18)
        ]
        assert [p.commit_count for p in points] == [1, 0, 0, 1]
        assert [p.cumulative_lines.total for p in points] == [10, 10, 10, 12]
        assert points[1].commit_shas == []
        assert points[3].commit_shas == ["b"]

    def test_category_breakdown_and_bytes(self):
        commit = make_commit("a", BASE, [
            ("src/app.py", 10, 0),
            ("tests/test_app.py", 5, 1),
        ])
        point = run(TimeSeriesAggregator(), [commit])[0]

        assert point.lines_added.total == 15
        assert point.lines_added.application == 10
        assert point.lines_added.test == 5
        assert point.lines_deleted.test == 1
        assert point.cumulative_lines.total == 14
        assert point.bytes_added.total == 750
        assert point.cumulative_bytes.total == 700

    def test_binary_changes_contribute_nothing(self):
        commit = CommitRecord("a", "Alice", "a@example.com", BASE, "logo",
                              (FileChange("logo.png", None, None),))
        point = run(TimeSeriesAggregator(), [commit])[0]
        assert point.commit_count == 1
        assert point.lines_added.total == 0
        assert point.bytes_added.total == 0

    def test_custom_bytes_per_line(self):
        config = AnalysisConfig(bytes_per_line=10)
        commit = make_commit("a", BASE, [("src/app.py", 3, 0)])
        point = run(TimeSeriesAggregator(config), [commit])[0]
        assert point.bytes_added.total == 30

    def test_weekly_buckets_start_on_monday(self):
        commits = [make_commit(f"c{i}", BASE + timedelta(days=7 * i), [("a.py", 1, 0)])
                   for i in range(20)]
        aggregator = TimeSeriesAggregator()
        points = run(aggregator, commits)
        assert aggregator.granularity is Granularity.WEEK
        assert all(p.bucket_start.weekday() == 0 for p in points)
        assert len(points) == 20

    def test_bucket_count_bounded_for_long_history(self):
        commits = [
            make_commit("old", datetime(2004, 3, 1, tzinfo=timezone.utc), [("a.py", 1, 0)]),
            make_commit("new", datetime(2024, 6, 1, tzinfo=timezone.utc), [("a.py", 1, 0)]),
        ]
        aggregator = TimeSeriesAggregator()
        points = run(aggregator, commits)

        assert aggregator.granularity is Granularity.MONTH
        assert 0 < len(points) <= 50
        assert points[0].commit_shas == ["old"]
        assert points[-1].commit_shas == ["new"]
        assert points[-1].cumulative_lines.total == 2

    def test_agrees_with_linear_series(self):
        commits = []
        for i in range(120):
            added = (i * 7) % 13
            deleted = (i * 5) % 11
            commits.append(make_commit(
                f"c{i:03d}", BASE + timedelta(days=i * 2, hours=i % 5),
                [("src/app.py", added, deleted), ("docs/notes.md", i % 3, 0)],
            ))

        points = run(TimeSeriesAggregator(), commits)
        linear = run(LinearSeriesAggregator(), commits)
        cumulative_by_sha = {p.sha: p.cumulative_lines for p in linear}

        assert points[-1].cumulative_lines.total == linear[-1].cumulative_lines
        for point in points:
            if point.commit_shas:
                assert point.cumulative_lines.total == cumulative_by_sha[point.commit_shas[-1]]

    def test_mixed_offsets_bucket_by_utc_day(self):
        plus_five = timezone(timedelta(hours=5))
        commits = [
            # 2024-01-01 20:00 UTC, local date is already the 2nd
            make_commit("a", datetime(2024, 1, 2, 1, 0, tzinfo=plus_five), [("a.py", 10, 0)]),
            make_commit("b", datetime(2024, 1, 1, 22, 0, tzinfo=timezone.utc), [("a.py", 5, 0)]),
        ]
        points = run(TimeSeriesAggregator(), commits)
        linear = run(LinearSeriesAggregator(), commits)
        cumulative_by_sha = {p.sha: p.cumulative_lines for p in linear}

        assert len(points) == 1
        assert points[0].bucket_start == date(2024, 1, 1)
        assert points[0].commit_shas == ["a", "b"]
        for point in points:
            assert point.cumulative_lines.total == cumulative_by_sha[point.commit_shas[-1]]


class TestLinearSeriesAggregator:
    def test_indices_and_running_totals(self):
        commits = [
            make_commit("a", BASE, [("a.py", 10, 0)]),
            make_commit("b", BASE, [("a.py", 0, 4)]),
            make_commit("c", BASE, [("a.py", 2, 2)]),
        ]
        points = run(LinearSeriesAggregator(), commits)

        assert [p.commit_index for p in points] == [0, 1, 2]
        assert [p.net_lines for p in points] == [10, -4, 0]
        assert [p.cumulative_lines for p in points] == [10, 6, 6]
        assert [p.cumulative_bytes for p in points] == [500, 300, 300]

    def test_cumulative_is_not_clamped(self):
        points = run(LinearSeriesAggregator(), [make_commit("a", BASE, [("a.py", 0, 8)])])
        assert points[0].cumulative_lines == -8


# ============================================================================
# CONTRIBUTOR & FILE TESTS
# ============================================================================


class TestContributorAggregator:
    def _commits(self):
        return [
            make_commit("a", BASE, [("a.py", 10, 2), ("b.py", 1, 0)],
                        author="Alice", email="alice@work.com"),
            make_commit("b", BASE - timedelta(days=2), [("a.py", 3, 3)],
                        author="Alice", email="alice@home.com"),
            make_commit("c", BASE, [("c.py", 5, 0)], author="Bob", email="bob@example.com"),
        ]

    def test_grouped_by_name(self):
        contributors = run(ContributorAggregator(), self._commits())

        alice = contributors["Alice"]
        assert alice.commits == 2
        assert alice.emails == {"alice@work.com", "alice@home.com"}
        assert alice.lines_added == 14
        assert alice.lines_deleted == 5
        assert alice.files_modified == {"a.py", "b.py"}
        assert alice.first_commit == BASE - timedelta(days=2)
        assert alice.last_commit == BASE
        assert contributors["Bob"].commits == 1

    def test_grouped_by_name_and_email(self):
        config = AnalysisConfig(contributor_identity=ContributorIdentity.NAME_EMAIL)
        contributors = run(ContributorAggregator(config), self._commits())

        assert len(contributors) == 3
        assert contributors["Alice <alice@work.com>"].commits == 1
        assert contributors["Alice <alice@home.com>"].canonical_name == "Alice"

    def test_average_lines_changed(self):
        assert ContributorStats("x").average_lines_changed == 0.0
        stats = ContributorStats("x", commits=2, lines_added=10, lines_deleted=4)
        assert stats.average_lines_changed == 7.0


class TestFileMetricsAggregator:
    def test_size_is_clamped_but_raw_kept(self):
        metrics = run(FileMetricsAggregator(), [
            make_commit("a", BASE, [("a.py", 3, 0)]),
            make_commit("b", BASE, [("a.py", 0, 8)]),
        ])["a.py"]

        assert metrics.raw_lines == -5
        assert metrics.current_lines == 0
        assert metrics.total_churn == 11
        assert metrics.total_commits == 2

    def test_history_fields(self):
        commits = [
            make_commit("a", BASE, [("src/app.py", 5, 0)], author="Alice"),
            make_commit("b", BASE - timedelta(days=1), [("src/app.py", 2, 1)], author="Bob"),
        ]
        metrics = run(FileMetricsAggregator(), commits)["src/app.py"]

        assert metrics.language == "Python"
        assert metrics.category is FileCategory.APPLICATION
        assert metrics.contributors == {"Alice", "Bob"}
        assert metrics.first_appeared == BASE - timedelta(days=1)
        assert metrics.last_modified == BASE

    def test_binary_counts_commit_without_churn(self):
        commit = CommitRecord("a", "Alice", "a@example.com", BASE, "logo",
                              (FileChange("logo.png", None, None),))
        metrics = run(FileMetricsAggregator(), [commit])["logo.png"]
        assert metrics.total_commits == 1
        assert metrics.total_churn == 0

    def test_heat_score(self):
        commits = [
            make_commit("a", BASE - timedelta(days=30), [("old.py", 1, 0)]),
            make_commit("b", BASE - timedelta(days=30), [("old.py", 1, 0)]),
            make_commit("c", BASE, [("new.py", 1, 0)]),
        ]
        metrics = run(FileMetricsAggregator(), commits)

        assert metrics["new.py"].heat_score == pytest.approx(1.0)
        assert metrics["old.py"].heat_score == pytest.approx(0.8 + 0.6 * math.exp(-1))

    def test_attach_complexity(self):
        aggregator = FileMetricsAggregator()
        run(aggregator, [make_commit("a", BASE, [("a.py", 1, 0)])])

        assert aggregator.attach_complexity({"a.py": 12, "missing.py": 3}) == 1
        assert aggregator.file_metrics["a.py"].complexity == 12.0

    def test_deleted_files_remain(self):
        metrics = run(FileMetricsAggregator(), [
            make_commit("a", BASE, [("gone.py", 4, 0)]),
            make_commit("b", BASE, [("gone.py", 0, 4)]),
        ])
        assert "gone.py" in metrics
        assert metrics["gone.py"].current_lines == 0


# ============================================================================
# WORD FREQUENCY TESTS
# ============================================================================


class TestWordFrequency:
    def test_tokenize(self):
        words = list(tokenize_message("Fix the parser bug, fix it again! 123 ok"))
        assert words == ["fix", "parser", "bug", "fix", "again"]

    def test_counts(self):
        commits = [
            make_commit("a", message="Fix parser crash"),
            make_commit("b", message="fix: Parser handles CRLF"),
        ]
        counts = run(WordFrequencyAggregator(), commits)
        assert counts["fix"] == 2
        assert counts["parser"] == 2
        assert counts["crlf"] == 1

    def test_stop_words_never_counted(self):
        commits = [make_commit("a", message="The and THE with Merge branch 'main' into the")]
        counts = run(WordFrequencyAggregator(), commits)
        assert "the" not in counts
        assert "merge" not in counts
        assert "branch" not in counts

    def test_custom_stop_words_are_normalized(self):
        config = AnalysisConfig(stop_words=frozenset({"Parser"}))
        counts = run(WordFrequencyAggregator(config), [make_commit("a", message="parser fix")])
        assert "parser" not in counts
        assert counts["fix"] == 1

    def test_word_cloud_scaling(self):
        cloud = word_cloud({"alpha": 10, "beta": 5, "gamma": 1})
        sizes = {entry["text"]: entry["size"] for entry in cloud}
        assert sizes["alpha"] == 80
        assert sizes["gamma"] == 10
        assert 10 < sizes["beta"] < 80
        assert word_cloud({}) == []


# ============================================================================
# RANKINGS & AWARDS TESTS
# ============================================================================


class TestTopN:
    def test_keeps_highest_with_stable_ties(self):
        top = TopN(3)
        for value, item in [(5, "a"), (5, "b"), (7, "c"), (5, "d"), (1, "e")]:
            top.offer(value, item)
        assert top.items() == ["c", "a", "b"]

    def test_fewer_items_than_size(self):
        top = TopN(5)
        top.offer(1, "x")
        assert top.items() == ["x"]


class TestCommitAwardsAggregator:
    def test_top_commits(self):
        commits = [
            make_commit("small", files=[("a.py", 1, 0)]),
            make_commit("big", files=[("a.py", 100, 0), ("b.py", 5, 50)]),
            make_commit("mid", files=[("a.py", 10, 10)]),
        ]
        awards = run(CommitAwardsAggregator(AnalysisConfig(top_n=2)), commits)

        assert [a.sha for a in awards["most_lines_added"]] == ["big", "mid"]
        assert [a.sha for a in awards["most_files_modified"]] == ["big", "small"]
        assert awards["most_bytes_removed"][0].sha == "big"
        assert awards["most_bytes_removed"][0].value == 50 * 50

    def test_merge_commits_excluded(self):
        commits = [
            make_commit("merge", files=[("a.py", 500, 0)],
                        message="Merge pull request #4 from feature"),
            make_commit("real", files=[("a.py", 1, 0)]),
        ]
        awards = run(CommitAwardsAggregator(), commits)
        assert [a.sha for a in awards["most_lines_added"]] == ["real"]

    def test_merge_commits_kept_when_configured(self):
        commits = [make_commit("merge", files=[("a.py", 5, 0)],
                               message="Merge branch 'dev'")]
        awards = run(CommitAwardsAggregator(AnalysisConfig(exclude_merge_commits=False)),
                     commits)
        assert awards["most_lines_added"][0].sha == "merge"


class TestRankingAndAwardsComputer:
    def _files(self):
        files = {}
        for path, lines, churn, complexity in [
            ("a.py", 100, 10, None),
            ("b.py", 300, 50, 4.0),
            ("c.py", 0, 80, None),
            ("d.py", 100, 10, 9.0),
        ]:
            files[path] = FileMetrics(path, "Python", FileCategory.APPLICATION,
                                      raw_lines=lines, total_churn=churn,
                                      complexity=complexity)
        return files

    def test_largest_excludes_empty_and_sums_to_hundred(self):
        rankings = RankingAndAwardsComputer(top_n=5).rank_files(self._files())

        assert [r.path for r in rankings.largest] == ["b.py", "a.py", "d.py"]
        assert rankings.largest[0].percentage == 60.0
        assert sum(r.percentage for r in rankings.largest) == pytest.approx(100.0)

    def test_ties_keep_first_seen_order(self):
        rankings = RankingAndAwardsComputer(top_n=2).rank_files(self._files())
        assert [r.path for r in rankings.most_churn] == ["c.py", "b.py"]
        assert [r.path for r in RankingAndAwardsComputer(top_n=3)
                .rank_files(self._files()).largest][1:] == ["a.py", "d.py"]

    def test_most_complex_only_scored_files(self):
        rankings = RankingAndAwardsComputer().rank_files(self._files())
        assert [r.path for r in rankings.most_complex] == ["d.py", "b.py"]

    def test_top_n_bounds_lists(self):
        rankings = RankingAndAwardsComputer(top_n=1).rank_files(self._files())
        assert len(rankings.largest) == 1
        assert rankings.largest[0].percentage == 100.0

    def test_contributor_awards(self):
        contributors = {
            "terse": ContributorStats("terse", commits=4, lines_added=4, lines_deleted=0),
            "verbose": ContributorStats("verbose", commits=2, lines_added=300, lines_deleted=100),
            "once": ContributorStats("once", commits=1, lines_added=1000),
        }
        lowest, highest = RankingAndAwardsComputer(award_min_commits=2).contributor_awards(
            contributors
        )
        assert [a.name for a in lowest] == ["terse", "verbose"]
        assert [a.name for a in highest] == ["verbose", "terse"]
        assert highest[0].average_lines_changed == 200.0

    def test_compute_combines_everything(self):
        rankings, awards = RankingAndAwardsComputer().compute(
            self._files(), {}, {"most_lines_added": []}
        )
        assert rankings.largest
        assert awards.most_lines_added == []
        assert awards.lowest_average_lines_changed == []
