"""Workflow tests with a scripted prompter and an in-memory catalog."""

import asyncio
import shutil
import subprocess
import tempfile
from contextlib import nullcontext
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from skills_installer.config import Settings
from skills_installer.core.applier import NullProgress
from skills_installer.core.catalog import LAZY_DESCRIPTION
from skills_installer.errors import CatalogFetchError, PreconditionError, UserCancelled
from skills_installer.models import (
    ExistingInstallation,
    ItemDescriptor,
    ItemMetadata,
    Operation,
    ResourceKind,
)
from skills_installer.tools.install import (
    ORPHAN_DESCRIPTION,
    InstallWorkflow,
    preselected_targets,
    target_options,
)

SKILL = ResourceKind.SKILL
needs_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class FakeCatalog:
    def __init__(self, identifiers: list[str], url: str = "file:///unused"):
        self.items = [
            ItemDescriptor(identifier=i, display_name=i.upper(), description=LAZY_DESCRIPTION)
            for i in identifiers
        ]
        self.url = url
        self.fetched: list[str] = []

    async def list_available(self, kind: ResourceKind) -> list[ItemDescriptor]:
        return list(self.items)

    async def fetch_description(self, kind: ResourceKind, identifier: str) -> ItemMetadata:
        self.fetched.append(identifier)
        return ItemMetadata(name=f"Skill {identifier}", description=f"Does {identifier}.")

    def clone_url(self, kind: ResourceKind) -> str:
        return self.url


class ScriptedPrompter:
    """Answers every prompt from a script and records what it was shown."""

    def __init__(self, targets: list[str], selection: list[str], gitignore: bool = True, peek: str | None = None):
        self.targets = targets
        self.selection = selection
        self.gitignore = gitignore
        self.peek = peek
        self.shown: dict = {}
        self.outcomes = []
        self.messages: list[str] = []

    def choose_kind(self) -> ResourceKind:
        return SKILL

    def choose_targets(self, kind, options, preselected):
        self.shown["options"] = options
        self.shown["target_preselected"] = preselected
        return self.targets

    def confirm_gitignore(self, install_path: str) -> bool:
        self.shown["gitignore_asked"] = install_path
        return self.gitignore

    def choose_items(self, kind, items, preselected, needs_update, load_description):
        self.shown["items"] = items
        self.shown["preselected"] = preselected
        self.shown["needs_update"] = needs_update
        if self.peek:
            self.shown["peeked"] = load_description(self.peek)
        if not self.selection:
            raise UserCancelled()
        return self.selection

    def status(self, message: str):
        return nullcontext()

    def progress(self, message: str):
        return nullcontext(NullProgress())

    def info(self, message: str) -> None:
        self.messages.append(message)

    def outcome(self, outcome, names) -> None:
        self.outcomes.append((outcome, names))


def _settings() -> Settings:
    return Settings(skill_paths=[".github/skills/", ".claude/skills/"])


def _upstream(base: Path) -> str:
    repo = base / "upstream"
    repo.mkdir()
    git = ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com"]
    subprocess.run(git + ["init", "-q"], cwd=repo, check=True)
    subprocess.run(git + ["symbolic-ref", "HEAD", "refs/heads/main"], cwd=repo, check=True)
    for name in ["a", "b", "c"]:
        (repo / name).mkdir()
        (repo / name / "SKILL.md").write_text(f"---\nname: {name}\n---\n")
    subprocess.run(git + ["add", "-A"], cwd=repo, check=True)
    subprocess.run(git + ["commit", "-q", "-m", "initial"], cwd=repo, check=True)
    return repo.as_uri()


def _fake_installation(path: Path, patterns: str) -> None:
    (path / ".git" / "info").mkdir(parents=True)
    (path / ".git" / "info" / "sparse-checkout").write_text(patterns)


def test_target_options_annotate_counts():
    with tempfile.TemporaryDirectory() as tmp:
        cwd = Path(tmp)
        existing = [
            ExistingInstallation(path=(cwd / ".claude/skills/").resolve(), kind=SKILL, identifiers=["a", "b"])
        ]
        options = target_options(SKILL, cwd, existing, _settings())
        assert options == [
            (".github/skills/", ".github/skills/"),
            (".claude/skills/", ".claude/skills/ (2 skills installed)"),
        ]


def test_preselected_targets_follow_installations_not_labels():
    with tempfile.TemporaryDirectory() as tmp:
        cwd = Path(tmp)
        existing = [
            ExistingInstallation(path=(cwd / ".claude/skills/").resolve(), kind=SKILL, identifiers=["a"])
        ]
        options = [
            ("vendor/not-installed)/", "vendor/not-installed)/"),
            (".claude/skills/", "Claude skills"),
            (".github/skills/", ".github/skills/"),
        ]
        assert preselected_targets(cwd, options, existing) == {".claude/skills/"}
        assert preselected_targets(cwd, options, []) == set()
        print("  PASS: preselection from installations")


def test_empty_catalog_is_an_error():
    with tempfile.TemporaryDirectory() as tmp:
        workflow = InstallWorkflow(FakeCatalog([]), ScriptedPrompter([], []), Path(tmp), settings=_settings())
        with pytest.raises(CatalogFetchError):
            asyncio.run(workflow.run())


def test_foreign_repository_is_refused():
    """A path with .git but no installation cannot be installed into."""
    with tempfile.TemporaryDirectory() as tmp:
        cwd = Path(tmp)
        (cwd / ".github" / "skills" / ".git").mkdir(parents=True)
        prompter = ScriptedPrompter([".github/skills/"], ["a"])
        workflow = InstallWorkflow(FakeCatalog(["a"]), prompter, cwd, settings=_settings())

        with pytest.raises(PreconditionError):
            asyncio.run(workflow.run())
        assert "items" not in prompter.shown
        print("  PASS: foreign repository refused")


def test_existing_selection_shown_with_orphans():
    """Installed items are preselected, including ones the catalog dropped."""
    with tempfile.TemporaryDirectory() as tmp:
        cwd = Path(tmp)
        _fake_installation(cwd / ".claude" / "skills", "/a/\n/gone/\n")
        catalog = FakeCatalog(["a", "b"])
        # Empty selection script cancels at the item prompt
        prompter = ScriptedPrompter([".claude/skills/"], [], peek="b")
        workflow = InstallWorkflow(catalog, prompter, cwd, settings=_settings())

        with pytest.raises(UserCancelled):
            asyncio.run(workflow.run())

        assert prompter.shown["target_preselected"] == {".claude/skills/"}
        assert prompter.shown["preselected"] == {"a", "gone"}
        assert prompter.shown["needs_update"] == set()
        items = prompter.shown["items"]
        assert [i.identifier for i in items] == ["a", "b", "gone"]
        assert items[-1].description == ORPHAN_DESCRIPTION
        assert "gitignore_asked" not in prompter.shown
        assert prompter.shown["peeked"].name == "Skill b"
        assert catalog.fetched == ["b"]
        print("  PASS: orphan kept in selection")


@needs_git
def test_install_then_manage():
    """First run materializes; second run reconciles the changed selection."""
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        catalog = FakeCatalog(["a", "b", "c"], _upstream(base))
        cwd = base / "project"
        cwd.mkdir()

        first = ScriptedPrompter([".github/skills/"], ["c", "a"])
        outcomes = asyncio.run(InstallWorkflow(catalog, first, cwd, settings=_settings()).run())

        assert len(outcomes) == 1
        outcome = outcomes[0]
        assert outcome.operation is Operation.MATERIALIZE
        assert outcome.selected == ["a", "c"]
        assert outcome.diff.added == ["a", "c"]
        assert outcome.gitignored
        assert first.shown["gitignore_asked"] == ".github/skills/"
        assert (cwd / ".gitignore").read_text() == "# AI Agent Skills\n.github/skills/\n"
        assert (cwd / ".github" / "skills" / "a" / "SKILL.md").exists()

        second = ScriptedPrompter([".github/skills/"], ["b", "c"])
        outcomes = asyncio.run(InstallWorkflow(catalog, second, cwd, settings=_settings()).run())

        outcome = outcomes[0]
        assert second.shown["preselected"] == {"a", "c"}
        assert outcome.operation is Operation.RECONCILE
        assert outcome.diff.added == ["b"]
        assert outcome.diff.removed == ["a"]
        assert outcome.diff.unchanged == ["c"]
        assert not outcome.gitignored
        assert not (cwd / ".github" / "skills" / "a").exists()
        assert (cwd / ".github" / "skills" / "b" / "SKILL.md").exists()
        assert (cwd / ".gitignore").read_text().count(".github/skills/") == 1
        print("  PASS: install then manage")


if __name__ == "__main__":
    print("=" * 60)
    print("skills-installer workflow tests")
    print("=" * 60)

    tests = [
        ("Workflow: target options", test_target_options_annotate_counts),
        ("Workflow: preselected targets", test_preselected_targets_follow_installations_not_labels),
        ("Workflow: foreign repository", test_foreign_repository_is_refused),
        ("Workflow: orphans", test_existing_selection_shown_with_orphans),
        ("Workflow: install then manage", test_install_then_manage),
    ]

    passed = 0
    failed = 0

    for name, test_fn in tests:
        try:
            print(f"\n[TEST] {name}")
            test_fn()
            passed += 1
        except Exception as e:
            print(f"  FAIL: {e}")
            failed += 1

    print(f"\n{'=' * 60}")
    print(f"Results: {passed} passed, {failed} failed, {passed + failed} total")
    print(f"{'=' * 60}")

    exit(1 if failed > 0 else 0)
