"""Tabular import and export.

A workbook holds two tables: nodes (Node, Name, Cluster, Parent cluster)
and edges (Source, Destination, Type, Label). Import does not build a
graph itself; it writes equivalent DSL text, which then goes through the
ordinary parser. Export writes the same two-table layout back out.
"""
from __future__ import annotations

import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .dsl.regenerate import quote_value
from .graph.types import Graph

logger = logging.getLogger(__name__)

NODE_COLUMNS = ["Node", "Name", "Cluster", "Parent cluster"]
EDGE_COLUMNS = ["Source", "Destination", "Type", "Label"]
NODES_SHEET = "Nodes"
EDGES_SHEET = "Edges"
INDENT = "  "


def _norm(column) -> str:
    return re.sub(r"[\s_\-]+", "", str(column)).lower()


def normalize_columns(df: pd.DataFrame, expected: Sequence[str], required: Sequence[str], table: str) -> pd.DataFrame:
    """Rename loosely spelled headers to `expected` and blank out missing optional ones.

    Raises:
        ValueError: if a required column is absent
    """
    lookup = {_norm(c): c for c in df.columns}
    missing = [c for c in required if _norm(c) not in lookup]
    if missing:
        raise ValueError(f"{table} table is missing column(s): {', '.join(missing)}")

    out = pd.DataFrame(index=df.index)
    for col in expected:
        source = lookup.get(_norm(col))
        out[col] = df[source] if source is not None else ""
    return out.fillna("").astype(str).apply(lambda s: s.str.strip())


def tables_to_dsl(nodes_df: pd.DataFrame, edges_df: Optional[pd.DataFrame] = None) -> str:
    """Synthesise DSL text from a node table and an optional edge table.

    Clusters nest by their parent column; a cluster whose parent is blank
    or not itself listed as a cluster is a root. The first non-blank parent
    given for a cluster wins.
    """
    nodes = normalize_columns(nodes_df, NODE_COLUMNS, ["Node"], "Node")

    order: List[str] = []
    parent: Dict[str, str] = {}
    members: Dict[str, List[Tuple[str, str]]] = defaultdict(list)
    floating: List[Tuple[str, str]] = []
    for row in nodes.to_dict("records"):
        node, name, cluster, parent_cluster = (row[c] for c in NODE_COLUMNS)
        if cluster:
            if cluster not in order:
                order.append(cluster)
            if parent_cluster and parent_cluster != cluster and cluster not in parent:
                parent[cluster] = parent_cluster
            if node:
                members[cluster].append((node, name))
        elif node:
            floating.append((node, name))

    known = set(order)
    children: Dict[str, List[str]] = defaultdict(list)
    roots: List[str] = []
    for cluster in order:
        p = parent.get(cluster)
        if p in known:
            children[p].append(cluster)
        else:
            roots.append(cluster)

    def node_line(label: str, name: str, depth: int) -> str:
        line = f"{INDENT * depth}Node: {label}"
        return f"{line} [name={name}]" if name else line

    lines = [node_line(label, name, 0) for label, name in floating]
    emitted = set()

    def emit(root: str) -> None:
        stack = [(root, 0)]
        while stack:
            cluster, depth = stack.pop()
            if cluster in emitted:
                continue
            emitted.add(cluster)
            lines.append(f"{INDENT * depth}Cluster: {cluster}")
            lines.extend(node_line(label, name, depth + 1) for label, name in members[cluster])
            for child in reversed(children[cluster]):
                stack.append((child, depth + 1))

    for root in roots:
        emit(root)
    for cluster in order:
        if cluster not in emitted:
            logger.warning(f"Cluster '{cluster}' is part of a parent cycle; emitting it as a root")
            emit(cluster)

    if edges_df is not None:
        edges = normalize_columns(edges_df, EDGE_COLUMNS, ["Source", "Destination"], "Edge")
        for row in edges.to_dict("records"):
            source, target, edge_type, label = (row[c] for c in EDGE_COLUMNS)
            if not source or not target:
                continue
            attrs = []
            if edge_type:
                attrs.append(f"arrow={edge_type}")
            if label:
                attrs.append(f"label={quote_value(label)}")
            lines.append(f"{source} -> {target}" + (f" [{', '.join(attrs)}]" if attrs else ""))

    return "\n".join(lines)


def _pick_sheet(sheets: Dict[str, pd.DataFrame], name: str, position: int) -> Optional[pd.DataFrame]:
    for sheet_name, df in sheets.items():
        if str(sheet_name).strip().lower() == name.lower():
            return df
    frames = list(sheets.values())
    return frames[position] if len(frames) > position else None


def import_workbook(path: Path) -> str:
    """Read an .xlsx workbook (Nodes and Edges sheets) and return DSL text."""
    sheets = pd.read_excel(path, sheet_name=None, dtype=str)
    nodes_df = _pick_sheet(sheets, NODES_SHEET, 0)
    if nodes_df is None:
        raise ValueError(f"No node table found in {path}")
    return tables_to_dsl(nodes_df, _pick_sheet(sheets, EDGES_SHEET, 1))


def import_csv(nodes_path: Path, edges_path: Optional[Path] = None) -> str:
    """Read a node CSV and an optional edge CSV and return DSL text."""
    nodes_df = pd.read_csv(nodes_path, dtype=str, keep_default_na=False)
    edges_df = pd.read_csv(edges_path, dtype=str, keep_default_na=False) if edges_path else None
    return tables_to_dsl(nodes_df, edges_df)


def load_tables(path: Path, edges_path: Optional[Path] = None) -> str:
    """Import a workbook or a CSV pair, chosen by file extension."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Table not found: {path}")
    if path.suffix.lower() in {".xlsx", ".xlsm", ".xls"}:
        return import_workbook(path)
    return import_csv(path, Path(edges_path) if edges_path else None)


def graph_to_tables(graph: Graph) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Flatten a graph into the node and edge tables."""
    clusters = graph.cluster_map()

    def cluster_label(cid: Optional[str]) -> str:
        return clusters[cid].label if cid in clusters else ""

    node_rows = []
    populated = set()
    for n in graph.nodes:
        cluster = clusters.get(n.cluster_id)
        populated.add(n.cluster_id)
        node_rows.append({
            "Node": n.label,
            "Name": n.name or "",
            "Cluster": cluster.label if cluster else "",
            "Parent cluster": cluster_label(cluster.parent_id) if cluster else "",
        })
    # Empty clusters still need a row to keep their place in the tree
    for c in graph.clusters:
        if c.id not in populated:
            node_rows.append({"Node": "", "Name": "", "Cluster": c.label, "Parent cluster": cluster_label(c.parent_id)})

    by_id = graph.node_map()
    edge_rows = []
    for e in graph.edges:
        if e.source not in by_id or e.target not in by_id:
            continue
        edge_rows.append({
            "Source": by_id[e.source].reference,
            "Destination": by_id[e.target].reference,
            "Type": e.type,
            "Label": e.label or "",
        })

    return pd.DataFrame(node_rows, columns=NODE_COLUMNS), pd.DataFrame(edge_rows, columns=EDGE_COLUMNS)


def export_workbook(graph: Graph, path: Path) -> Path:
    """Write the graph as a two-sheet workbook."""
    nodes_df, edges_df = graph_to_tables(graph)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        nodes_df.to_excel(writer, sheet_name=NODES_SHEET, index=False)
        edges_df.to_excel(writer, sheet_name=EDGES_SHEET, index=False)
    return path
