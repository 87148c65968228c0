from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from routinectl.core.models import PageWindow, RoutineSummary
from routinectl.services.routine_repository import RoutineRepository

logger = logging.getLogger(__name__)

PAGINATION_WINDOW = 2


@dataclass(frozen=True)
class PagePlan:
    window: PageWindow
    redirect_offset: int | None = None

    @property
    def needs_redirect(self) -> bool:
        return self.redirect_offset is not None


def parse_offset(value: Any) -> int:
    try:
        offset = int(value)
    except (TypeError, ValueError):
        return 0
    return offset if offset > 0 else 0


def plan_window(total_count: int, offset: int, page_size: int) -> PagePlan:
    window = PageWindow(offset=max(offset, 0), page_size=page_size, total_count=total_count)
    if total_count > 0 and window.offset >= total_count:
        return PagePlan(window=window, redirect_offset=max(0, total_count - page_size))
    return PagePlan(window=window)


def _pagination_sequence(current_page: int, total_pages: int) -> list[int | None]:
    if total_pages <= (PAGINATION_WINDOW * 2) + 5:
        return list(range(1, total_pages + 1))

    items: list[int | None] = [1]
    start = max(2, current_page - PAGINATION_WINDOW)
    end = min(total_pages - 1, current_page + PAGINATION_WINDOW)

    if start > 2:
        items.append(None)
    items.extend(range(start, end + 1))
    if end < total_pages - 1:
        items.append(None)
    items.append(total_pages)
    return items


class PaginatedLister:
    def __init__(self, repository: RoutineRepository, page_size: int) -> None:
        self._repository = repository
        self.page_size = max(int(page_size), 1)

    def plan(self, database: str, kind: str | None, offset: int) -> PagePlan:
        total_count = self._repository.count_routines(database, kind)
        plan = plan_window(total_count, offset, self.page_size)
        if plan.needs_redirect:
            logger.info(
                "Routine list: offset past end db=%s offset=%s total=%s redirect=%s",
                database,
                offset,
                total_count,
                plan.redirect_offset,
            )
        return plan

    def fetch(
        self, database: str, kind: str | None, window: PageWindow
    ) -> list[RoutineSummary]:
        return self._repository.list_routines(
            database, kind, limit=window.page_size, offset=window.offset
        )

    def navigator(self, window: PageWindow) -> list[dict[str, Any]]:
        if window.total_count <= window.page_size:
            return []
        total_pages = (window.total_count + window.page_size - 1) // window.page_size
        current_page = window.offset // window.page_size + 1
        items: list[dict[str, Any]] = []
        for value in _pagination_sequence(current_page, total_pages):
            if value is None:
                items.append({"type": "gap"})
            else:
                items.append(
                    {
                        "type": "page",
                        "page": value,
                        "offset": (value - 1) * window.page_size,
                        "current": value == current_page,
                    }
                )
        return items
