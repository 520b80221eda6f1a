"""Local-filesystem workspace whose function locator is built on libcst."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import libcst as cst
from libcst.metadata import MetadataWrapper, PositionProvider

from ..errors import FileNotFound, UnreadableFile
from ..line_offsets import LineOffsetMapper
from ..models import EnclosingFunction
from .base import SourceDocument, Workspace

logger = logging.getLogger(__name__)


@dataclass
class _FuncInfo:
    qualified_name: str  # e.g. "Outer.method.inner"
    start_line: int  # includes decorators
    end_line: int


def _node_lines(pos) -> Tuple[int, int]:
    end_line = pos.end.line
    # A range ending at column 0 stops before that line.
    if pos.end.column == 0 and end_line > pos.start.line:
        end_line -= 1
    return pos.start.line, end_line


class _FunctionCollector(cst.CSTVisitor):
    """Visit a module and collect _FuncInfo for every function, nested ones too."""

    METADATA_DEPENDENCIES = (PositionProvider,)

    def __init__(self) -> None:
        self.functions: List[_FuncInfo] = []
        self._scope_stack: List[str] = []

    def visit_ClassDef(self, node: cst.ClassDef) -> Optional[bool]:
        self._scope_stack.append(node.name.value)
        return None

    def leave_ClassDef(self, node: cst.ClassDef) -> None:
        self._scope_stack.pop()

    def visit_FunctionDef(self, node: cst.FunctionDef) -> Optional[bool]:
        start_line, end_line = _node_lines(self.get_metadata(PositionProvider, node))
        if node.decorators:
            first = self.get_metadata(PositionProvider, node.decorators[0])
            start_line = min(start_line, first.start.line)
        name = node.name.value
        self.functions.append(
            _FuncInfo(
                qualified_name=".".join(self._scope_stack + [name]),
                start_line=start_line,
                end_line=end_line,
            )
        )
        self._scope_stack.append(name)
        return None

    def leave_FunctionDef(self, node: cst.FunctionDef) -> None:
        self._scope_stack.pop()


def collect_functions(source: str) -> List[_FuncInfo]:
    """Parse *source*; raise cst.ParserSyntaxError when it is not valid Python."""
    wrapper = MetadataWrapper(cst.parse_module(source))
    collector = _FunctionCollector()
    wrapper.visit(collector)
    return collector.functions


class PythonDocument(SourceDocument):
    """A parsed Python file.  :meth:`update` re-parses under the write lock."""

    def __init__(self, path: str, source: str) -> None:
        self.path = path
        self._set(source)

    def _set(self, source: str) -> None:
        functions = collect_functions(source)
        self._source = source
        self._mapper = LineOffsetMapper(source)
        self._functions = functions

    def update(self, source: str) -> None:
        self._set(source)

    @property
    def text(self) -> str:
        return self._source

    @property
    def mapper(self) -> LineOffsetMapper:
        return self._mapper

    def enclosing_function_at(self, offset: int) -> Optional[EnclosingFunction]:
        line = self._mapper.line_of_offset(offset)
        containing = [
            f for f in self._functions if f.start_line <= line <= f.end_line
        ]
        if not containing:
            return None
        # Smallest span wins; on a tie the later (inner) definition.
        best = min(
            reversed(containing), key=lambda f: f.end_line - f.start_line
        )
        start = self._mapper.offset_of_line_start(best.start_line)
        end = self._mapper.offset_of_line_end(best.end_line)
        return EnclosingFunction(
            name=best.qualified_name,
            text=self._source[start:end],
            start_offset=start,
            end_offset=end,
            start_line=best.start_line,
            end_line=best.end_line,
        )


class LocalWorkspace(Workspace):
    """Python files under *root*, loaded lazily and reloaded when they change."""

    def __init__(self, root: Union[str, Path]) -> None:
        super().__init__()
        self.root = Path(root).resolve()
        self._documents: Dict[str, Tuple[float, PythonDocument]] = {}

    def _resolve(self, path: str) -> Path:
        p = Path(path)
        if not p.is_absolute():
            p = self.root / p
        return p.resolve()

    def find_document(self, path: str) -> PythonDocument:
        resolved = self._resolve(path)
        if not resolved.exists():
            raise FileNotFound(path)
        if not resolved.is_file():
            raise UnreadableFile(f"Not a regular file: {path}")
        try:
            mtime = resolved.stat().st_mtime
        except OSError as exc:
            raise UnreadableFile(f"Could not read file: {path}: {exc}") from exc
        key = str(resolved)

        with self.lock_for_read():
            cached = self._documents.get(key)
            if cached is not None and cached[0] == mtime:
                return cached[1]

        try:
            source = resolved.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise UnreadableFile(f"Could not read file: {path}: {exc}") from exc

        with self.lock_for_write():
            cached = self._documents.get(key)
            try:
                if cached is not None:
                    cached[1].update(source)
                    document = cached[1]
                else:
                    document = PythonDocument(key, source)
            except cst.ParserSyntaxError as exc:
                raise UnreadableFile(f"Could not parse file: {path}: {exc}") from exc
            self._documents[key] = (mtime, document)
        logger.debug("loaded %s (%d bytes)", key, len(source))
        return document


def default_workspace(root: Optional[str] = None) -> LocalWorkspace:
    return LocalWorkspace(root if root is not None else os.getcwd())
