"""Pluggable ordering of test cases and test collections."""

import logging
import traceback
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from unitrun.models.units import TestCase, TestCollection

log = logging.getLogger(__name__)


class CaseOrderer(Protocol):
    """Decides the run order of the test cases in a class."""

    def order(self, cases: Sequence[TestCase]) -> Sequence[TestCase]: ...


class CollectionOrderer(Protocol):
    """Decides the run order of the collections in an assembly."""

    def order(self, collections: Sequence[TestCollection]) -> Sequence[TestCollection]: ...


@dataclass(frozen=True)
class DiscoveryCaseOrderer:
    """Keeps the order in which cases were discovered."""

    def order(self, cases: Sequence[TestCase]) -> Sequence[TestCase]:
        return list(cases)


@dataclass(frozen=True)
class DisplayNameCaseOrderer:
    """Sorts cases by display name."""

    def order(self, cases: Sequence[TestCase]) -> Sequence[TestCase]:
        return sorted(cases, key=lambda case: case.display_name)


@dataclass(frozen=True)
class DiscoveryCollectionOrderer:
    """Keeps the order in which collections were discovered."""

    def order(self, collections: Sequence[TestCollection]) -> Sequence[TestCollection]:
        return list(collections)


@dataclass(frozen=True)
class NameCollectionOrderer:
    """Sorts collections by name."""

    def order(self, collections: Sequence[TestCollection]) -> Sequence[TestCollection]:
        return sorted(collections, key=lambda collection: collection.name)


CASE_ORDERERS: dict[str, Callable[[], CaseOrderer]] = {
    "discovery": DiscoveryCaseOrderer,
    "display-name": DisplayNameCaseOrderer,
}

COLLECTION_ORDERERS: dict[str, Callable[[], CollectionOrderer]] = {
    "discovery": DiscoveryCollectionOrderer,
    "name": NameCollectionOrderer,
}


def order_with_fallback[T](
    orderer: CaseOrderer | CollectionOrderer,
    items: Sequence[T],
    notify: Callable[[str], None],
) -> list[T]:
    """Order ``items``; if the orderer raises, keep discovery order.

    The failure is reported through ``notify`` and never propagates.
    """
    try:
        return list(orderer.order(items))  # type: ignore[arg-type]
    except Exception as exc:
        notice = (
            f"Orderer '{type(orderer).__qualname__}' threw "
            f"'{type(exc).__qualname__}' during ordering: {exc}\n"
            + "".join(traceback.format_tb(exc.__traceback__))
        )
        log.warning("%s", notice.rstrip())
        notify(notice.rstrip())
        return list(items)
