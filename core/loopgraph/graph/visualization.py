"""
Graph rendering: Mermaid, ASCII and Graphviz DOT.

All output is sorted by node name / path-map label so the same graph
always renders to the same text. Conditional edges without a path map have
no statically known targets; they are rendered as a comment (Mermaid),
``???`` (ASCII) or omitted (DOT).
"""

import asyncio
import base64
import logging
from pathlib import Path

import httpx

from loopgraph.errors import GraphError
from loopgraph.graph.edge import END, START

logger = logging.getLogger(__name__)

MERMAID_INK_URL = "https://mermaid.ink"


class VisualizationMixin:
    """
    Rendering methods for CompiledGraph.

    Relies on the host class exposing ``nodes``, ``edges``,
    ``conditional_edges`` and ``entry_point``.
    """

    def _sorted_fixed_edges(self) -> list[tuple[str, str]]:
        return sorted((e.source, e.target) for e in self.edges.values())

    def _sorted_conditional_edges(self) -> list:
        return [self.conditional_edges[s] for s in sorted(self.conditional_edges)]

    def draw_mermaid(self) -> str:
        """
        Render the graph as a Mermaid flowchart.

        START/END are rounded nodes, user nodes rectangles. Fixed edges use
        solid arrows, path-map entries dashed arrows labelled with the key.
        """
        lines = ["graph TD", f'    {START}(["{START}"])']
        lines.extend(f'    {name}["{name}"]' for name in sorted(self.nodes))
        lines.append(f'    {END}(["{END}"])')
        lines.append(f"    {START} --> {self.entry_point}")

        for source, target in self._sorted_fixed_edges():
            lines.append(f"    {source} --> {target}")

        for ce in self._sorted_conditional_edges():
            if ce.path_map is None:
                lines.append(f"    %% {ce.source} has conditional edge (path_map not provided)")
                continue
            for label in sorted(ce.path_map):
                lines.append(f"    {ce.source} -.-> |{label}| {ce.path_map[label]}")

        return "\n".join(lines)

    def draw_ascii(self) -> str:
        """Render a plain-text summary of nodes and edges."""
        lines = [
            "Graph:",
            f"  Nodes: {', '.join(sorted(self.nodes))}",
            f"  Entry: {START} -> {self.entry_point}",
            "  Edges:",
        ]

        for source, target in self._sorted_fixed_edges():
            lines.append(f"    {source} -> {target}")

        for ce in self._sorted_conditional_edges():
            targets = " | ".join(ce.possible_targets()) if ce.path_map is not None else "???"
            lines.append(f"    {ce.source} -> {targets}  [conditional]")

        return "\n".join(lines)

    def draw_dot(self) -> str:
        """Render the graph in Graphviz DOT format."""
        lines = ["digraph G {", "    rankdir=TD;", f'    "{START}" [shape=oval];']
        lines.extend(f'    "{name}" [shape=box];' for name in sorted(self.nodes))
        lines.append(f'    "{END}" [shape=oval];')
        lines.append(f'    "{START}" -> "{self.entry_point}" [style=solid];')

        for source, target in self._sorted_fixed_edges():
            lines.append(f'    "{source}" -> "{target}" [style=solid];')

        for ce in self._sorted_conditional_edges():
            if ce.path_map is None:
                continue
            for label in sorted(ce.path_map):
                lines.append(
                    f'    "{ce.source}" -> "{ce.path_map[label]}" '
                    f'[style=dashed, label="{label}"];'
                )

        lines.append("}")
        return "\n".join(lines)

    async def draw_mermaid_png(self, path: Path | str, timeout: float = 30.0) -> Path:
        """
        Render the Mermaid diagram to an image file via mermaid.ink.

        mermaid.ink serves JPEG from its ``/img`` endpoint. Needs network access.
        """
        return await self._fetch_mermaid_ink("img", Path(path), timeout)

    async def draw_mermaid_svg(self, path: Path | str, timeout: float = 30.0) -> Path:
        """Render the Mermaid diagram to an SVG file via mermaid.ink."""
        return await self._fetch_mermaid_ink("svg", Path(path), timeout)

    async def _fetch_mermaid_ink(self, endpoint: str, path: Path, timeout: float) -> Path:
        encoded = base64.urlsafe_b64encode(self.draw_mermaid().encode("utf-8")).decode("ascii")
        url = f"{MERMAID_INK_URL}/{endpoint}/{encoded}"

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GraphError(f"mermaid.ink returned status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise GraphError(f"mermaid.ink request failed: {e}") from e

        try:
            await asyncio.to_thread(path.write_bytes, response.content)
        except OSError as e:
            raise GraphError(f"Failed to write image file {path}: {e}") from e

        logger.info(f"Rendered graph to {path} ({len(response.content)} bytes)")
        return path
