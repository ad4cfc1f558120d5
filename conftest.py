import pytest
import subprocess
from statter import ProgressReporter


def _commit_block(sha, author, email, date, message, numstat=()):
    lines = [f"commit {sha}", f"Author: {author} <{email}>", f"Date:   {date}", ""]
    lines += [f"    {line}" for line in message.splitlines()]
    lines.append("")
    lines += list(numstat)
    lines.append("")
    return "\n".join(lines) + "\n"


@pytest.fixture
def quiet_reporter():
    return ProgressReporter(quiet=True)


@pytest.fixture
def make_log():
    """Build `git log --numstat` text from (sha, author, email, date, message, numstat) tuples."""

    def build(commits):
        return "".join(_commit_block(*commit) for commit in commits)

    return build


@pytest.fixture
def sample_log(make_log):
    """Two commits, two authors, one day apart."""
    return make_log(
        [
            (
                "aaa111",
                "John Doe",
                "john@example.com",
                "Mon Jan 15 10:30:00 2024 +0000",
                "Initial parser implementation",
                ["10\t0\tsrc/parser.py", "5\t0\tREADME.md"],
            ),
            (
                "bbb222",
                "Jane Smith",
                "jane@example.com",
                "Tue Jan 16 09:00:00 2024 +0000",
                "Add parser tests\n\nCovers chunk boundaries",
                ["20\t2\ttests/test_parser.py", "3\t1\tsrc/parser.py", "-\t-\tdocs/logo.png"],
            ),
        ]
    )


@pytest.fixture
def git_repo(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()

    def run(*args):
        subprocess.run(["git", "-C", str(repo)] + list(args),
                       check=True, capture_output=True)

    run("init")
    run("config", "user.email", "tester@test.com")
    run("config", "user.name",  "Tester")
    run("config", "commit.gpgsign", "false")

    # Commit 1: add two files
    (repo / "app.py").write_text("print('hello')\n", encoding='utf-8')
    (repo / "lib.py").write_text("def helper(): pass\n", encoding='utf-8')
    run("add", ".")
    run("commit", "-m", "initial")

    # Commit 2: modify both
    (repo / "app.py").write_text("print('hello')\nprint('world')\n", encoding='utf-8')
    (repo / "lib.py").write_text("def helper(): return 1\n", encoding='utf-8')
    run("add", ".")
    run("commit", "-m", "update both")

    # Commit 3: add docs
    (repo / "readme.md").write_text("# App\n", encoding='utf-8')
    run("add", ".")
    run("commit", "-m", "add readme")

    # Commit 4: modify app only
    (repo / "app.py").write_text("print('hello')\nprint('world')\nprint('!')\n", encoding='utf-8')
    run("add", ".")
    run("commit", "-m", "tweak app")

    return str(repo)
