from __future__ import annotations

import logging

from rowforge.dataset_model import Column, sort_columns
from rowforge.rule_tokens import reference_tokens

logger = logging.getLogger("column_dependencies")


def _dependency_error(location: str, issue: str, hint: str) -> str:
    return f"{location}: {issue}. Fix: {hint}."


def reference_graph(columns: list[Column]) -> dict[str, list[str]]:
    """
    Map each column name to the names it references.
    Self references and names outside the column set are dropped.
    """
    names = {c.name for c in columns}
    graph: dict[str, list[str]] = {}
    for column in sort_columns(columns):
        deps: list[str] = []
        for token in reference_tokens(column.rules):
            ref = token.name or ""
            if ref == column.name or ref not in names or ref in deps:
                continue
            deps.append(ref)
        graph[column.name] = deps
    return graph


def find_reference_cycle(columns: list[Column]) -> list[str] | None:
    """Return one cycle as [a, b, ..., a], or None when the graph is acyclic."""
    graph = reference_graph(columns)
    visiting: list[str] = []
    done: set[str] = set()

    def visit(name: str) -> list[str] | None:
        if name in done:
            return None
        if name in visiting:
            return visiting[visiting.index(name):] + [name]
        visiting.append(name)
        for dep in graph.get(name, []):
            found = visit(dep)
            if found is not None:
                return found
        visiting.pop()
        done.add(name)
        return None

    for name in graph:
        cycle = visit(name)
        if cycle is not None:
            return cycle
    return None


def column_evaluation_order(columns: list[Column]) -> list[Column]:
    """
    Return columns so that every column follows the columns it references,
    using Kahn's algorithm. Ties keep position order.
    """
    ordered_input = sort_columns(columns)
    if not ordered_input:
        return []

    graph = reference_graph(ordered_input)
    rank = {c.name: idx for idx, c in enumerate(ordered_input)}
    by_name = {c.name: c for c in ordered_input}
    deps = {name: set(refs) for name, refs in graph.items()}
    rev: dict[str, set[str]] = {name: set() for name in graph}
    for name, refs in graph.items():
        for ref in refs:
            rev[ref].add(name)

    ready = sorted((n for n in graph if not deps[n]), key=rank.__getitem__)
    out: list[Column] = []

    while ready:
        n = ready.pop(0)
        out.append(by_name[n])
        for child in rev[n]:
            deps[child].discard(n)
            if not deps[child]:
                ready.append(child)
        ready.sort(key=rank.__getitem__)

    if len(out) != len(ordered_input):
        cycle = find_reference_cycle(ordered_input) or sorted(n for n in graph if deps[n])
        path = " -> ".join(f"@{name}" for name in cycle)
        logger.debug("Column evaluation order blocked by cycle: %s", path)
        raise ValueError(
            _dependency_error(
                "Column dependency ordering",
                f"circular references between columns ({path})",
                "break the cycle by removing one of the references",
            )
        )

    return out
