"""Catalog client and credential tests against a mocked GitHub API."""

import asyncio
import base64
import tempfile
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import httpx
import pytest

from skills_installer.config import Settings
from skills_installer.core.auth import GitHubAuth
from skills_installer.core.catalog import LAZY_DESCRIPTION, CatalogClient, humanize
from skills_installer.errors import CatalogFetchError
from skills_installer.models import ResourceKind

SKILLS_LISTING = [
    {"name": ".github", "type": "dir"},
    {"name": ".claude", "type": "dir"},
    {"name": "node_modules", "type": "dir"},
    {"name": ".vscode", "type": "dir"},
    {"name": "README.md", "type": "file"},
    {"name": "address-pr-comments", "type": "dir"},
    {"name": "git_commit", "type": "dir"},
    "garbage",
]

SUBAGENTS_LISTING = [
    {"name": "code-reviewer.agent.md", "type": "file"},
    {"name": "README.md", "type": "file"},
    {"name": "drafts", "type": "dir"},
    {"name": "planner.agent.md", "type": "file"},
]


def _settings(token: str = "") -> Settings:
    # Pass the token under its env alias so it outranks any GITHUB_TOKEN in the environment
    return Settings(GITHUB_TOKEN=token, use_gh_cli=False)


def _encoded(text: str) -> dict:
    return {"content": base64.b64encode(text.encode()).decode(), "encoding": "base64"}


def _client(handler, token: str = "") -> CatalogClient:
    settings = _settings(token)
    return CatalogClient(
        auth=GitHubAuth(settings),
        settings=settings,
        transport=httpx.MockTransport(handler),
    )


def _github(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/repos/supercorks/agent-skills/contents":
        return httpx.Response(200, json=SKILLS_LISTING)
    if path == "/repos/supercorks/subagents/contents":
        return httpx.Response(200, json=SUBAGENTS_LISTING)
    if path == "/repos/supercorks/agent-skills/contents/git_commit/SKILL.md":
        return httpx.Response(
            200, json=_encoded("---\nname: Git Commit\ndescription: Writes commits.\n---\n")
        )
    if path == "/repos/supercorks/subagents/contents/planner.agent.md":
        return httpx.Response(
            200, json=_encoded("```chatagent\n---\nname: Planner\ndescription: Plans work.\n---\n```\n")
        )
    return httpx.Response(404, json={"message": "Not Found"})


async def _list(kind: ResourceKind, handler=_github):
    async with _client(handler) as client:
        return await client.list_available(kind)


def test_list_skills_filters_entries():
    """Only visible, non-excluded directories are skills."""
    items = asyncio.run(_list(ResourceKind.SKILL))
    assert [i.identifier for i in items] == ["address-pr-comments", "git_commit"]
    assert items[0].display_name == "Address Pr Comments"
    assert items[1].display_name == "Git Commit"
    assert all(i.description == LAZY_DESCRIPTION for i in items)
    print(f"  PASS: {len(items)} skills listed")


def test_list_subagents_filters_entries():
    items = asyncio.run(_list(ResourceKind.SUBAGENT))
    assert [i.identifier for i in items] == ["code-reviewer.agent.md", "planner.agent.md"]
    assert items[0].display_name == "Code Reviewer"
    print(f"  PASS: {len(items)} subagents listed")


def test_list_rate_limited():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"message": "API rate limit exceeded"})

    with pytest.raises(CatalogFetchError) as exc_info:
        asyncio.run(_list(ResourceKind.SKILL, handler))
    assert exc_info.value.status == 403
    assert "403" in str(exc_info.value)
    assert "GITHUB_TOKEN" in str(exc_info.value)
    print("  PASS: 403 surfaces as CatalogFetchError")


def test_list_network_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(CatalogFetchError) as exc_info:
        asyncio.run(_list(ResourceKind.SUBAGENT, handler))
    assert exc_info.value.status is None


def test_list_unexpected_shape():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"message": "not a listing"})

    with pytest.raises(CatalogFetchError):
        asyncio.run(_list(ResourceKind.SKILL, handler))


def test_fetch_description_bare_and_fenced():
    async def run():
        async with _client(_github) as client:
            skill = await client.fetch_description(ResourceKind.SKILL, "git_commit")
            agent = await client.fetch_description(ResourceKind.SUBAGENT, "planner.agent.md")
            return skill, agent

    skill, agent = asyncio.run(run())
    assert skill.name == "Git Commit"
    assert skill.description == "Writes commits."
    assert agent.name == "Planner"
    assert agent.description == "Plans work."
    print("  PASS: metadata fetched and parsed")


def test_fetch_description_missing_file():
    async def run():
        async with _client(_github) as client:
            return await client.fetch_description(ResourceKind.SKILL, "address-pr-comments")

    with pytest.raises(CatalogFetchError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.status == 404


def test_auth_headers_attached():
    seen: list[httpx.Headers] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers)
        return httpx.Response(200, json=[])

    async def run():
        async with _client(handler, token="ghp_test") as client:
            return await client.list_available(ResourceKind.SKILL)

    assert asyncio.run(run()) == []
    assert seen[0]["Authorization"] == "Bearer ghp_test"
    assert seen[0]["Accept"] == "application/vnd.github.v3+json"
    assert seen[0]["User-Agent"] == "skills-installer"
    print("  PASS: auth headers sent")


def test_auth_without_token():
    auth = GitHubAuth(_settings())
    assert asyncio.run(auth.get_token()) == ""
    assert "Authorization" not in asyncio.run(auth.headers())


def test_auth_token_cached_until_reset():
    settings = _settings(" tok \n")
    auth = GitHubAuth(settings)
    assert asyncio.run(auth.get_token()) == "tok"
    settings.github_token = "other"
    assert asyncio.run(auth.get_token()) == "tok"
    auth.reset()
    assert asyncio.run(auth.get_token()) == "other"


def _fake_gh(directory: Path, body: str) -> str:
    script = directory / "gh"
    script.write_text(f"#!/bin/sh\n{body}\n")
    script.chmod(0o755)
    return str(script)


@pytest.mark.skipif(sys.platform == "win32", reason="shell script stand-in for gh")
def test_auth_falls_back_to_gh_cli():
    with tempfile.TemporaryDirectory() as tmp:
        settings = Settings(GITHUB_TOKEN="", gh_executable=_fake_gh(Path(tmp), "echo gho_from_cli"))
        auth = GitHubAuth(settings)
        assert asyncio.run(auth.get_token()) == "gho_from_cli"
        print("  PASS: token read from gh auth token")


@pytest.mark.skipif(sys.platform == "win32", reason="shell script stand-in for gh")
def test_auth_gh_cli_failure_and_timeout():
    with tempfile.TemporaryDirectory() as tmp:
        failing = Settings(GITHUB_TOKEN="", gh_executable=_fake_gh(Path(tmp), "exit 1"))
        assert asyncio.run(GitHubAuth(failing).get_token()) == ""

        slow_dir = Path(tmp) / "slow"
        slow_dir.mkdir()
        slow = Settings(
            GITHUB_TOKEN="",
            gh_executable=_fake_gh(slow_dir, "exec sleep 5"),
            gh_timeout=0.2,
        )
        assert asyncio.run(GitHubAuth(slow).get_token()) == ""


@pytest.mark.skipif(sys.platform == "win32", reason="shell script stand-in for gh")
def test_auth_gh_cli_does_not_block_event_loop():
    """Other coroutines keep running while gh resolves the token."""
    with tempfile.TemporaryDirectory() as tmp:
        settings = Settings(GITHUB_TOKEN="", gh_executable=_fake_gh(Path(tmp), "sleep 0.5; echo gho_slow"))
        ticks: list[int] = []

        async def ticker():
            for i in range(5):
                await asyncio.sleep(0.05)
                ticks.append(i)

        async def resolve():
            token = await GitHubAuth(settings).get_token()
            # Ticks that ran while gh was still resolving
            return token, len(ticks)

        async def run():
            (token, during), _ = await asyncio.gather(resolve(), ticker())
            return token, during

        token, during = asyncio.run(run())
        assert token == "gho_slow"
        assert during >= 3


def test_auth_gh_cli_disabled():
    settings = Settings(GITHUB_TOKEN="", use_gh_cli=False, gh_executable="/bin/echo")
    assert asyncio.run(GitHubAuth(settings).get_token()) == ""


def test_clone_urls():
    client = CatalogClient(settings=_settings())
    assert client.clone_url(ResourceKind.SKILL) == "https://github.com/supercorks/agent-skills.git"
    assert client.clone_url(ResourceKind.SUBAGENT) == "https://github.com/supercorks/subagents.git"


def test_humanize():
    assert humanize("address-pr-comments") == "Address Pr Comments"
    assert humanize("code-reviewer.agent.md") == "Code Reviewer"
    assert humanize("snake_case") == "Snake Case"


if __name__ == "__main__":
    print("=" * 60)
    print("skills-installer catalog tests")
    print("=" * 60)

    tests = [
        ("Catalog: list skills", test_list_skills_filters_entries),
        ("Catalog: list subagents", test_list_subagents_filters_entries),
        ("Catalog: rate limit", test_list_rate_limited),
        ("Catalog: metadata", test_fetch_description_bare_and_fenced),
        ("Auth: headers", test_auth_headers_attached),
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
