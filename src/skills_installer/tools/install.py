"""Interactive install / manage workflow.

Pipeline per run:
1. Choose resource kind, fetch its catalog
2. Discover existing installations, choose one or more target paths
3. Per target (sequentially): detect, check updates, select, diff, apply, report
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Protocol

from skills_installer.config import Settings, settings as default_settings
from skills_installer.core.applier import ProgressSink, TransactionApplier
from skills_installer.core.catalog import CatalogClient
from skills_installer.core.git import GitDriver
from skills_installer.core.gitignore import add_to_gitignore
from skills_installer.core.inspector import detect, discover
from skills_installer.core.reconciler import compute_diff, decide_operation, order_by_catalog
from skills_installer.core.updates import UpdateChecker
from skills_installer.errors import CatalogFetchError, PreconditionError
from skills_installer.models import (
    ExistingInstallation,
    InstallationTarget,
    ItemDescriptor,
    ItemMetadata,
    ResourceKind,
    TargetOutcome,
)

logger = logging.getLogger("skills-installer.workflow")

ORPHAN_DESCRIPTION = "Installed, but no longer listed in the catalog"


class Prompter(Protocol):
    """What the workflow needs from the terminal."""

    def choose_kind(self) -> ResourceKind: ...

    def choose_targets(
        self, kind: ResourceKind, options: list[tuple[str, str]], preselected: set[str]
    ) -> list[str]: ...

    def confirm_gitignore(self, install_path: str) -> bool: ...

    def choose_items(
        self,
        kind: ResourceKind,
        items: list[ItemDescriptor],
        preselected: set[str],
        needs_update: set[str],
        load_description: Callable[[str], ItemMetadata],
    ) -> list[str]: ...

    def status(self, message: str) -> AbstractContextManager: ...

    def progress(self, message: str) -> AbstractContextManager[ProgressSink]: ...

    def info(self, message: str) -> None: ...

    def outcome(self, outcome: TargetOutcome, names: dict[str, str]) -> None: ...


def target_options(
    kind: ResourceKind,
    cwd: Path,
    existing: list[ExistingInstallation],
    settings: Settings | None = None,
) -> list[tuple[str, str]]:
    """Conventional paths as (path, label), annotated with installed counts."""
    settings = settings or default_settings
    counts = {installation.path: installation.count for installation in existing}
    options: list[tuple[str, str]] = []
    for relative in settings.conventional_paths(kind):
        count = counts.get((cwd / relative).resolve())
        label = relative
        if count:
            noun = kind.label if count == 1 else kind.plural
            label = f"{relative} ({count} {noun} installed)"
        options.append((relative, label))
    return options


def preselected_targets(
    cwd: Path, options: list[tuple[str, str]], existing: list[ExistingInstallation]
) -> set[str]:
    """Options whose path already holds an installation."""
    installed = {installation.path for installation in existing}
    return {relative for relative, _ in options if (cwd / relative).resolve() in installed}


class InstallWorkflow:
    """Drives one interactive run against the core components."""

    def __init__(
        self,
        catalog: CatalogClient,
        prompter: Prompter,
        cwd: Path,
        driver: GitDriver | None = None,
        settings: Settings | None = None,
    ):
        self._catalog = catalog
        self._prompter = prompter
        self._cwd = Path(cwd)
        self._driver = driver or GitDriver(settings)
        self._settings = settings or default_settings
        self._applier = TransactionApplier(self._driver)
        self._updates = UpdateChecker(self._driver)
        self._metadata: dict[str, ItemMetadata] = {}

    async def run(self) -> list[TargetOutcome]:
        """Run the whole interactive flow. Returns one outcome per target."""
        prompter = self._prompter
        kind = await asyncio.to_thread(prompter.choose_kind)

        with prompter.status(f"Fetching available {kind.plural} from repository..."):
            items = await self._catalog.list_available(kind)
        if not items:
            raise CatalogFetchError(f"No {kind.plural} found in the repository")
        prompter.info(f"✅ Found {len(items)} available {kind.plural}")

        existing = discover(kind, self._cwd, self._driver, self._settings)
        for installation in existing:
            prompter.info(f"📂 Existing installation: {installation.path} ({installation.count} {kind.plural})")

        options = target_options(kind, self._cwd, existing, self._settings)
        preselected = preselected_targets(self._cwd, options, existing)
        chosen = await asyncio.to_thread(prompter.choose_targets, kind, options, preselected)

        outcomes: list[TargetOutcome] = []
        for install_path in dict.fromkeys(chosen):
            outcomes.append(await self.process_target(kind, items, install_path))
        return outcomes

    async def process_target(
        self, kind: ResourceKind, items: list[ItemDescriptor], install_path: str
    ) -> TargetOutcome:
        """Select, diff and apply for a single target path."""
        prompter = self._prompter
        target = InstallationTarget.from_path(self._cwd / install_path, kind)
        detection = detect(target.path, kind, self._driver)

        if not detection.present and target.is_version_controlled:
            raise PreconditionError(
                f'"{install_path}" already contains a git repository. '
                "Please remove it first or choose a different path."
            )

        needs_update: set[str] = set()
        if detection.present:
            with prompter.status(f"Checking {install_path} for updates..."):
                needs_update = await self._updates.check_updates(
                    target.path, kind, detection.identifiers
                )

        gitignore = False
        if not detection.present:
            gitignore = await asyncio.to_thread(prompter.confirm_gitignore, install_path)

        catalog_ids = [item.identifier for item in items]
        choices = list(items)
        for identifier in detection.identifiers:
            if identifier not in catalog_ids:
                choices.append(
                    ItemDescriptor(identifier=identifier, display_name=identifier, description=ORPHAN_DESCRIPTION)
                )
        order = [item.identifier for item in choices]

        selected = await asyncio.to_thread(
            prompter.choose_items,
            kind,
            choices,
            set(detection.identifiers),
            needs_update,
            self._description_loader(kind),
        )

        diff = compute_diff(detection.identifiers, selected, order)
        operation = decide_operation(detection.present)
        applied = order_by_catalog(selected, order)
        if diff.is_noop and detection.present:
            prompter.info("No selection changes, pulling latest versions...")
        logger.info(
            "%s %s: +%d -%d =%d",
            operation.value, target.path, len(diff.added), len(diff.removed), len(diff.unchanged),
        )

        with prompter.progress(f"Installing selected {kind.plural} into {install_path}...") as sink:
            await self._applier.apply(
                operation, target, applied, self._catalog.clone_url(kind), sink
            )

        if gitignore:
            gitignore = add_to_gitignore(self._cwd / ".gitignore", install_path, kind)

        outcome = TargetOutcome(
            path=target.path,
            kind=kind,
            operation=operation,
            diff=diff,
            selected=applied,
            updated=[i for i in diff.unchanged if i in needs_update],
            gitignored=gitignore,
        )
        prompter.outcome(outcome, self._display_names(choices))
        return outcome

    def _description_loader(self, kind: ResourceKind) -> Callable[[str], ItemMetadata]:
        """Blocking loader for the prompt thread; fetches run on the event loop."""
        loop = asyncio.get_running_loop()

        def load(identifier: str) -> ItemMetadata:
            if identifier not in self._metadata:
                future = asyncio.run_coroutine_threadsafe(
                    self._catalog.fetch_description(kind, identifier), loop
                )
                self._metadata[identifier] = future.result()
            return self._metadata[identifier]

        return load

    def _display_names(self, items: list[ItemDescriptor]) -> dict[str, str]:
        names = {item.identifier: item.display_name for item in items}
        for identifier, metadata in self._metadata.items():
            if metadata.name:
                names[identifier] = metadata.name
        return names
