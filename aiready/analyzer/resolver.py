"""Resolve raw import strings to scanned file paths.

Resolution runs against the in-memory set of scanned paths, never the disk,
so the dependency graph is a pure function of the scan.
"""
import posixpath
from typing import Dict, Iterable, List, Optional

from .models import ImportRef, Language

JS_EXTENSIONS = ['.ts', '.tsx', '.d.ts', '.js', '.jsx', '.mjs', '.cjs', '.json']
SCRIPT_LANGUAGES = {Language.JAVASCRIPT, Language.TYPESCRIPT, Language.TSX}


class ImportResolver:
    """
    Resolves import strings to project files based on language semantics.
    Unresolvable targets (third-party packages, stdlib) resolve to None.
    """

    def __init__(self, paths: Iterable[str]):
        self.paths = frozenset(paths)
        self.source_roots = [''] + (['src/'] if any(p.startswith('src/') for p in self.paths) else [])
        # `com/acme/Foo` -> files whose extensionless path ends with it
        self._by_stem: Dict[str, List[str]] = {}
        for path in sorted(self.paths):
            stem = posixpath.splitext(path)[0]
            self._by_stem.setdefault(stem, []).append(path)

    def resolve(self, current_file: str, ref: ImportRef) -> List[str]:
        """
        Determines the file path(s) an import refers to.

        Args:
            current_file: Scanned path of the file containing the import.
            ref: The raw import.

        Returns:
            Resolved scanned paths (empty when unresolved).
        """
        if not ref.target:
            return []
        language = Language.from_path(current_file)
        if language == Language.PYTHON:
            return self._resolve_python(current_file, ref)
        if language in SCRIPT_LANGUAGES:
            resolved = self._resolve_js(current_file, ref.target)
            return [resolved] if resolved else []
        resolved = self._resolve_by_suffix(current_file, ref.target)
        return [resolved] if resolved else []

    # -------------------------------------------------------------------------
    # Python Resolution Logic
    # -------------------------------------------------------------------------

    def _resolve_python(self, current_file: str, ref: ImportRef) -> List[str]:
        target = ref.target
        if target.startswith('.'):
            stripped = target.lstrip('.')
            level = len(target) - len(stripped)
            base_dir = posixpath.dirname(current_file)
            for _ in range(level - 1):
                if not base_dir:
                    return []
                base_dir = posixpath.dirname(base_dir)

            if not stripped:
                # from . import a, b: each name may be a submodule
                found = [
                    resolved for resolved in (
                        self._check_python_path(posixpath.join(base_dir, name)) for name in ref.names
                    ) if resolved
                ]
                if found:
                    return found
                package = self._check_python_path(base_dir) if base_dir else None
                return [package] if package else []

            resolved = self._check_python_path(posixpath.join(base_dir, stripped.replace('.', '/')))
            return [resolved] if resolved else []

        rel_path = target.replace('.', '/')
        for root in self.source_roots:
            resolved = self._check_python_path(root + rel_path)
            if resolved:
                # from pkg import submodule
                submodules = [
                    sub for sub in (
                        self._check_python_path(f"{root}{rel_path}/{name}") for name in ref.names
                    ) if sub
                ]
                return [resolved] + submodules
        return []

    def _check_python_path(self, path_no_ext: str) -> Optional[str]:
        # 1. Check as module file
        as_file = path_no_ext + '.py'
        if as_file in self.paths:
            return as_file
        # 2. Check as package
        as_package = posixpath.join(path_no_ext, '__init__.py')
        if as_package in self.paths:
            return as_package
        return None

    # -------------------------------------------------------------------------
    # JS/TS Resolution Logic
    # -------------------------------------------------------------------------

    def _resolve_js(self, current_file: str, target: str) -> Optional[str]:
        if target.startswith('.'):
            candidate = posixpath.normpath(posixpath.join(posixpath.dirname(current_file), target))
            if candidate.startswith('../') or candidate == '..':
                return None
            return self._probe_js_path(candidate)

        # Bare specifiers resolve only when they name a project path (baseUrl style)
        for root in self.source_roots:
            resolved = self._probe_js_path(root + target)
            if resolved:
                return resolved
        return None

    def _probe_js_path(self, path: str) -> Optional[str]:
        """
        Probes using JS resolution rules:
        1. Exact match
        2. Extensions (.ts, .tsx, .js, ...)
        3. Directory index files
        """
        if path == '.':
            path = ''
        if path in self.paths:
            return path
        for ext in JS_EXTENSIONS:
            if path + ext in self.paths:
                return path + ext
        for ext in JS_EXTENSIONS:
            index_file = posixpath.join(path, 'index' + ext) if path else 'index' + ext
            if index_file in self.paths:
                return index_file
        return None

    # -------------------------------------------------------------------------
    # Other languages: dotted or slashed module paths matched by suffix
    # -------------------------------------------------------------------------

    def _resolve_by_suffix(self, current_file: str, target: str) -> Optional[str]:
        if target.startswith('.'):
            candidate = posixpath.normpath(posixpath.join(posixpath.dirname(current_file), target))
            matches = self._by_stem.get(candidate, [])
            return matches[0] if matches else None

        tail = target.replace('::', '/').replace('.', '/')
        candidates = sorted(
            path
            for stem, paths in self._by_stem.items()
            if stem == tail or stem.endswith('/' + tail)
            for path in paths
            if path != current_file
        )
        return candidates[0] if candidates else None
