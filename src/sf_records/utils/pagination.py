"""Pagination helpers for the Salesforce query API."""

from __future__ import annotations

from typing import Any, Callable


def paginate(
    fetch_fn: Callable[[str | None], dict[str, Any]],
    results_key: str = "records",
    max_results: int | None = None,
) -> list[dict[str, Any]]:
    """Collect results across pages by following ``nextRecordsUrl``.

    Args:
        fetch_fn: Called with None for the first page, then with each
                  ``nextRecordsUrl``; returns the page as a dict.
        results_key: The key in each page containing the results list.
        max_results: Stop once this many results have been collected.

    Returns:
        All results concatenated across pages, truncated to ``max_results``.
    """
    all_results: list[dict[str, Any]] = []
    next_url: str | None = None

    while True:
        page = fetch_fn(next_url)
        all_results.extend(page.get(results_key, []))

        if max_results is not None and len(all_results) >= max_results:
            return all_results[:max_results]

        next_url = page.get("nextRecordsUrl")
        if not next_url:
            break

    return all_results
