"""Shared fixtures: project trees on disk and in-memory code units."""
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import pytest

from aiready.analyzer.models import CodeUnit, SourceFile, Span, UnitKind
from aiready.analyzer.normalizer import normalize


# A 20-line TypeScript function used by the duplication tests
SUMMARIZE_TS = """export function summarize(items: number[], label: string): string {
  let total = 0;
  let count = 0;
  for (const item of items) {
    if (item > 10) {
      total += item * 2;
    } else {
      total += item;
    }
    count += 1;
  }
  const average = count > 0 ? total / count : 0;
  const parts = [];
  parts.push(label);
  parts.push(String(total));
  parts.push(String(average));
  const text = parts.join(", ");
  console.log(text);
  return text;
}
"""


@pytest.fixture
def make_project(tmp_path):
    """Write {relative path: text} into tmp_path and return the root."""
    def _make(files: Dict[str, str]) -> Path:
        for rel_path, content in files.items():
            target = tmp_path / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding='utf-8')
        return tmp_path
    return _make


@pytest.fixture
def make_units():
    """Normalize in-memory sources into (files, units_by_file)."""
    def _make(sources: Dict[str, str]) -> Tuple[List[SourceFile], Dict[str, Sequence[CodeUnit]]]:
        files = [SourceFile.from_text(path, content) for path, content in sorted(sources.items())]
        units_by_file = {file.path: normalize(file)[0] for file in files}
        return files, units_by_file
    return _make


def synthetic_unit(path: str, tokens: Sequence[str], start: int = 1, end: int = 10,
                   name: str = "fn", kind: UnitKind = UnitKind.FUNCTION) -> CodeUnit:
    """A hand-built unit for detector tests that don't need a parser."""
    return CodeUnit(
        file_path=path,
        kind=kind,
        name=name,
        span=Span(start, 1, end, 2),
        tokens=tuple(tokens),
        signature="",
    )
