"""Selection reconciliation: diff old vs new selection and pick the operation.

Pure functions, no I/O.
"""

from collections.abc import Iterable

from skills_installer.models import Operation, SelectionDiff


def _unique(identifiers: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(identifiers))


def order_by_catalog(identifiers: Iterable[str], catalog_order: list[str] | None) -> list[str]:
    """Sort identifiers by catalog position; unknown ones follow in input order."""
    items = _unique(identifiers)
    if not catalog_order:
        return items
    position = {identifier: i for i, identifier in enumerate(catalog_order)}
    known = sorted((i for i in items if i in position), key=position.__getitem__)
    unknown = [i for i in items if i not in position]
    return known + unknown


def compute_diff(
    installed: Iterable[str],
    selected: Iterable[str],
    catalog_order: list[str] | None = None,
) -> SelectionDiff:
    """Partition installed and selected identifiers.

    added = selected - installed, removed = installed - selected,
    unchanged = installed & selected, each ordered by the catalog listing.
    """
    old = _unique(installed)
    new = _unique(selected)
    old_set, new_set = set(old), set(new)

    # Fallback order when an item is missing from the catalog: new, then old
    merged = order_by_catalog(new + old, catalog_order)
    return SelectionDiff(
        added=[i for i in merged if i in new_set and i not in old_set],
        removed=[i for i in merged if i in old_set and i not in new_set],
        unchanged=[i for i in merged if i in old_set and i in new_set],
    )


def decide_operation(prior_present: bool) -> Operation:
    """Reconcile whenever something is installed, even for a no-op diff.

    Reconciling is also how updates are pulled for unchanged items.
    """
    return Operation.RECONCILE if prior_present else Operation.MATERIALIZE
