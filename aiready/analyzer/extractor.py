"""Code unit and import extraction from parsed syntax trees.

Two extractors share one contract, extract(file) -> list of CodeUnit:
StructuralExtractor walks a tree-sitter tree, LineChunkExtractor cuts the
file into fixed line windows when no usable tree exists.
"""
import re
from bisect import bisect_left
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
from tree_sitter import Node, Tree

from . import tokens as tok
from .models import CodeUnit, ImportRef, Language, SourceFile, Span, UnitKind
from .parser import LanguageParser

CHUNK_LINES = 20


class SyntaxErrorsFound(Exception):
    """Tree-sitter recovered from syntax errors; the tree is not trustworthy."""


@dataclass
class _Leaf:
    start_byte: int
    normalized: str
    raw: str
    is_identifier: bool


@dataclass
class _UnitNode:
    node: Node
    kind: UnitKind
    name: str
    simple_name: str


def _node_text(node: Node, source_code: bytes) -> str:
    return source_code[node.start_byte:node.end_byte].decode('utf-8', errors='replace')


def _span(node: Node) -> Span:
    return Span(
        start_line=node.start_point[0] + 1,
        start_column=node.start_point[1] + 1,
        end_line=node.end_point[0] + 1,
        end_column=node.end_point[1] + 1,
    )


def _is_relative(target: str) -> bool:
    return target.startswith('./') or target.startswith('../') or target in ('.', '..')


def split_lines(text: str) -> List[str]:
    """Lines as tree-sitter counts them: only a newline character breaks a line."""
    lines = text.split('\n')
    if lines and lines[-1] == '':
        lines.pop()
    return lines


def module_span_of(text: str) -> Span:
    """Span of a whole file, staying inside its line range."""
    lines = split_lines(text)
    if not lines:
        return Span(1, 1, 0, 1)
    return Span(1, 1, len(lines), len(lines[-1]) + 1)


class StructuralExtractor:
    """Extract functions, classes and imports from tree-sitter trees."""

    FUNCTION_TYPES = {
        'python': {'function_definition'},
        'javascript': {'function_declaration', 'generator_function_declaration', 'method_definition'},
    }

    CLASS_TYPES = {
        'python': {'class_definition'},
        'javascript': {'class_declaration', 'abstract_class_declaration'},
    }

    # Values that turn `const name = <value>` into a named unit
    BOUND_FUNCTION_TYPES = {'arrow_function', 'function_expression', 'function', 'generator_function'}
    BOUND_CLASS_TYPES = {'class'}
    FIELD_TYPES = {'public_field_definition', 'field_definition'}

    # Named declarations that define a symbol without becoming a unit
    TYPE_DECLARATIONS = {'interface_declaration', 'type_alias_declaration', 'enum_declaration'}

    IDENTIFIER_TYPES = {
        'identifier', 'property_identifier', 'type_identifier', 'field_identifier',
        'shorthand_property_identifier', 'shorthand_property_identifier_pattern',
        'private_property_identifier', 'statement_identifier',
    }
    REFERENCE_TYPES = {'identifier', 'type_identifier', 'shorthand_property_identifier'}
    STRING_TYPES = {'string', 'concatenated_string', 'template_string', 'regex', 'jsx_text'}
    NUMBER_TYPES = {'integer', 'float', 'number'}
    COMMENT_TYPES = {'comment', 'line_comment', 'block_comment', 'html_comment'}

    def __init__(self, language: Language):
        """Initialize extractor for a language with a tree-sitter grammar.

        Args:
            language: One of LanguageParser.SUPPORTED_LANGUAGES
        """
        self.language = language
        self.family = 'python' if language == Language.PYTHON else 'javascript'
        self.function_types = self.FUNCTION_TYPES[self.family]
        self.class_types = self.CLASS_TYPES[self.family]
        self.keywords = tok.KEYWORDS.get(language, set())

    def extract(self, file: SourceFile) -> List[CodeUnit]:
        """Parse file and extract its units, module unit first.

        Raises:
            SyntaxErrorsFound: If the tree contains ERROR or MISSING nodes
        """
        source_code = file.content.encode('utf-8')
        tree = LanguageParser(self.language).parse_source(source_code)
        if tree.root_node.has_error:
            raise SyntaxErrorsFound(file.path)
        return self.extract_from_tree(tree, source_code, file.path)

    def extract_from_tree(self, tree: Tree, source_code: bytes, file_path: str) -> List[CodeUnit]:
        root = tree.root_node
        leaves: List[_Leaf] = []
        unit_nodes: List[_UnitNode] = []
        import_nodes: List[Node] = []
        self._collect(root, source_code, None, leaves, unit_nodes, import_nodes)

        leaf_starts = [leaf.start_byte for leaf in leaves]

        def leaves_within(node: Node) -> Sequence[_Leaf]:
            lo = bisect_left(leaf_starts, node.start_byte)
            hi = bisect_left(leaf_starts, node.end_byte)
            return leaves[lo:hi]

        # Each import belongs to the innermost unit around it, else the module
        imports_by_owner: Dict[int, List[ImportRef]] = {}
        for import_node in import_nodes:
            refs = self._import_refs(import_node, source_code)
            if not refs:
                continue
            owner = -1
            for index, unit_node in enumerate(unit_nodes):
                node = unit_node.node
                if node.start_byte <= import_node.start_byte and import_node.end_byte <= node.end_byte:
                    owner = index
            imports_by_owner.setdefault(owner, []).extend(refs)

        module_tokens = tuple(leaf.normalized for leaf in leaves)
        module_span = module_span_of(source_code.decode('utf-8', errors='replace'))
        units = [CodeUnit(
            file_path=file_path,
            kind=UnitKind.MODULE,
            name='<module>',
            span=module_span,
            tokens=module_tokens,
            signature=tok.signature(module_tokens),
            imports=tuple(imports_by_owner.get(-1, ())),
            definitions=tuple(sorted(self._module_definitions(root, source_code))),
            references=self._references(leaves),
        )]

        for index, unit_node in enumerate(unit_nodes):
            unit_leaves = leaves_within(unit_node.node)
            unit_tokens = tuple(leaf.normalized for leaf in unit_leaves)
            units.append(CodeUnit(
                file_path=file_path,
                kind=unit_node.kind,
                name=unit_node.name,
                span=_span(unit_node.node),
                tokens=unit_tokens,
                signature=tok.signature(unit_tokens),
                imports=tuple(imports_by_owner.get(index, ())),
                definitions=(unit_node.simple_name,),
                references=self._references(unit_leaves),
            ))
        return units

    def _references(self, leaves: Sequence[_Leaf]) -> Tuple[str, ...]:
        return tuple(sorted({leaf.raw for leaf in leaves if leaf.is_identifier}))

    def _collect(self, node: Node, source_code: bytes, parent_class: Optional[str],
                 leaves: List[_Leaf], unit_nodes: List[_UnitNode], import_nodes: List[Node]):
        """Single pre-order walk gathering leaves, unit nodes and import nodes."""
        node_type = node.type

        if node_type in self.COMMENT_TYPES:
            return
        if node_type in self.STRING_TYPES:
            leaves.append(_Leaf(node.start_byte, tok.STR, _node_text(node, source_code), False))
            return
        if node_type in self.NUMBER_TYPES:
            leaves.append(_Leaf(node.start_byte, tok.NUM, _node_text(node, source_code), False))
            return
        if node.child_count == 0:
            raw = _node_text(node, source_code)
            if node_type in self.IDENTIFIER_TYPES and raw not in self.keywords:
                leaves.append(_Leaf(node.start_byte, tok.ID, raw, node_type in self.REFERENCE_TYPES))
            elif raw.strip():
                leaves.append(_Leaf(node.start_byte, raw, raw, False))
            return

        if self._is_import(node, source_code):
            import_nodes.append(node)

        unit = self._as_unit(node, source_code, parent_class)
        if unit is not None:
            unit_nodes.append(unit)
            if unit.kind == UnitKind.CLASS:
                parent_class = unit.name

        for child in node.children:
            self._collect(child, source_code, parent_class, leaves, unit_nodes, import_nodes)

    def _as_unit(self, node: Node, source_code: bytes, parent_class: Optional[str],
                 wrapped: bool = False) -> Optional[_UnitNode]:
        node_type = node.type

        if node_type == 'decorated_definition':
            inner = node.child_by_field_name('definition')
            if inner is None:
                return None
            unit = self._as_unit(inner, source_code, parent_class, wrapped=True)
            if unit is not None:
                # Decorators are part of the unit's text
                unit.node = node
            return unit

        if not wrapped and node.parent is not None and node.parent.type == 'decorated_definition':
            # Reported once, through the decorated_definition wrapper
            return None

        kind = None
        name_node = node.child_by_field_name('name')
        if node_type in self.BOUND_FUNCTION_TYPES | self.BOUND_CLASS_TYPES and self._is_default_export(node):
            kind = UnitKind.FUNCTION if node_type in self.BOUND_FUNCTION_TYPES else UnitKind.CLASS
            return _UnitNode(node=node, kind=kind, name='default', simple_name='default')

        if node_type in self.function_types:
            kind = UnitKind.FUNCTION
        elif node_type in self.class_types:
            kind = UnitKind.CLASS
        elif node_type == 'variable_declarator':
            value = node.child_by_field_name('value')
            if value is not None and value.type in self.BOUND_FUNCTION_TYPES:
                kind = UnitKind.FUNCTION
            elif value is not None and value.type in self.BOUND_CLASS_TYPES:
                kind = UnitKind.CLASS
            if name_node is None or name_node.type != 'identifier':
                return None
        elif node_type in self.FIELD_TYPES:
            # Class fields holding functions act as methods
            value = node.child_by_field_name('value')
            if value is not None and value.type in self.BOUND_FUNCTION_TYPES:
                kind = UnitKind.FUNCTION
            name_node = name_node or node.child_by_field_name('property')
            if name_node is None or name_node.type not in self.IDENTIFIER_TYPES:
                return None

        if kind is None or name_node is None:
            return None

        simple_name = _node_text(name_node, source_code)
        name = simple_name
        if parent_class and kind == UnitKind.FUNCTION:
            name = f"{parent_class}.{simple_name}"
        return _UnitNode(node=node, kind=kind, name=name, simple_name=simple_name)

    @staticmethod
    def _is_default_export(node: Node) -> bool:
        """`export default function () {}` and friends: the value of an export."""
        parent = node.parent
        if parent is None or parent.type != 'export_statement':
            return False
        value = parent.child_by_field_name('value')
        return value is not None and (value.start_byte, value.end_byte) == (node.start_byte, node.end_byte)

    def _module_definitions(self, root: Node, source_code: bytes) -> List[str]:
        """Top-level names that are not units: assignments and type declarations."""
        names = []
        for statement in root.children:
            if statement.type == 'export_statement':
                declaration = statement.child_by_field_name('declaration')
                if declaration is None:
                    continue
                statement = declaration

            if statement.type == 'expression_statement':
                for child in statement.children:
                    if child.type == 'assignment':
                        left = child.child_by_field_name('left')
                        if left is not None and left.type == 'identifier':
                            names.append(_node_text(left, source_code))
            elif statement.type in ('lexical_declaration', 'variable_declaration'):
                for child in statement.children:
                    if child.type == 'variable_declarator':
                        name_node = child.child_by_field_name('name')
                        if name_node is not None and name_node.type == 'identifier':
                            names.append(_node_text(name_node, source_code))
            elif statement.type in self.TYPE_DECLARATIONS:
                name_node = statement.child_by_field_name('name')
                if name_node is not None:
                    names.append(_node_text(name_node, source_code))
        return names

    def _is_import(self, node: Node, source_code: bytes) -> bool:
        node_type = node.type
        if node_type in ('import_statement', 'import_from_statement'):
            return True
        if node_type == 'export_statement':
            return node.child_by_field_name('source') is not None
        if node_type == 'call_expression' and self.family == 'javascript':
            function_node = node.child_by_field_name('function')
            if function_node is None:
                return False
            return function_node.type == 'import' or _node_text(function_node, source_code) == 'require'
        return False

    def _import_refs(self, node: Node, source_code: bytes) -> List[ImportRef]:
        line = node.start_point[0] + 1
        if self.family == 'python':
            return self._python_imports(node, source_code, line)
        ref = self._js_import(node, source_code, line)
        return [ref] if ref else []

    def _python_imports(self, node: Node, source_code: bytes, line: int) -> List[ImportRef]:
        """Handles `import a.b as c, d` and `from .a import b`."""
        if node.type == 'import_statement':
            refs = []
            for child in node.children_by_field_name('name'):
                if child.type == 'aliased_import':
                    module = _node_text(child.child_by_field_name('name'), source_code)
                    alias_node = child.child_by_field_name('alias')
                    bound = _node_text(alias_node, source_code) if alias_node else module.split('.')[0]
                else:
                    module = _node_text(child, source_code)
                    bound = module.split('.')[0]
                refs.append(ImportRef(target=module, line=line, is_relative=False, names=(bound,)))
            return refs

        module_node = node.child_by_field_name('module_name')
        if module_node is None:
            return []
        module = _node_text(module_node, source_code)
        names = []
        for child in node.children_by_field_name('name'):
            if child.type == 'aliased_import':
                alias_node = child.child_by_field_name('alias')
                name_node = child.child_by_field_name('name')
                names.append(_node_text(alias_node or name_node, source_code))
            else:
                names.append(_node_text(child, source_code))
        return [ImportRef(target=module, line=line, is_relative=module.startswith('.'), names=tuple(names))]

    def _js_import(self, node: Node, source_code: bytes, line: int) -> Optional[ImportRef]:
        """Handles import/export-from statements, require() and dynamic import()."""
        source_node = None
        names = []
        if node.type in ('import_statement', 'export_statement'):
            source_node = node.child_by_field_name('source')
            for child in node.children:
                if child.type == 'import_clause':
                    names.extend(self._identifiers(child, source_code))
        else:
            arguments = node.child_by_field_name('arguments')
            if arguments is not None:
                for arg in arguments.children:
                    if arg.type == 'string':
                        source_node = arg
                        break
        if source_node is None or source_node.type != 'string':
            return None
        target = _node_text(source_node, source_code).strip('\'"`')
        if not target:
            return None
        return ImportRef(target=target, line=line, is_relative=_is_relative(target), names=tuple(names))

    def _identifiers(self, node: Node, source_code: bytes) -> List[str]:
        found = []
        stack = [node]
        while stack:
            current = stack.pop()
            if current.type == 'identifier':
                found.append(_node_text(current, source_code))
            stack.extend(reversed(current.children))
        return found


class LineChunkExtractor:
    """Fallback extractor: fixed-size line windows plus regex import sniffing."""

    # `import a.b as c, d` lists several modules in one statement
    PYTHON_IMPORT_LIST = re.compile(
        r'^[ \t]*import[ \t]+([\w.]+(?:[ \t]+as[ \t]+\w+)?(?:[ \t]*,[ \t]*[\w.]+(?:[ \t]+as[ \t]+\w+)?)*)',
        re.MULTILINE,
    )
    PYTHON_IMPORTS = [
        re.compile(r'^\s*from\s+(\.*[\w.]*)\s+import\s+(.+)$', re.MULTILINE),
        PYTHON_IMPORT_LIST,
    ]
    SCRIPT_IMPORTS = [
        re.compile(r'^\s*(?:import|export)\b[^\'"`;]*?\bfrom\s*[\'"]([^\'"]+)[\'"]', re.MULTILINE),
        re.compile(r'^\s*import\s*[\'"]([^\'"]+)[\'"]', re.MULTILINE),
        re.compile(r'\brequire\(\s*[\'"]([^\'"]+)[\'"]\s*\)'),
        re.compile(r'\bimport\(\s*[\'"]([^\'"]+)[\'"]\s*\)'),
    ]
    JAVA_IMPORTS = [
        re.compile(r'^\s*import\s+(?:static\s+)?([\w.]+?)(?:\.\*)?\s*;', re.MULTILINE),
    ]
    GO_IMPORTS = [
        re.compile(r'^\s*import\s+(?:\w+\s+)?"([^"]+)"', re.MULTILINE),
    ]
    RUST_IMPORTS = [
        re.compile(r'^\s*(?:pub\s+)?use\s+([\w:]+)', re.MULTILINE),
    ]

    def __init__(self, language: Language, window: int = CHUNK_LINES):
        self.language = language
        self.window = window

    def extract(self, file: SourceFile) -> List[CodeUnit]:
        lines = split_lines(file.content)
        module_tokens = tuple(tok.lex(file.content, self.language))
        units = [CodeUnit(
            file_path=file.path,
            kind=UnitKind.MODULE,
            name='<module>',
            span=module_span_of(file.content),
            tokens=module_tokens,
            signature=tok.signature(module_tokens),
            imports=tuple(self._imports(file.content)),
        )]

        for start in range(0, len(lines), self.window):
            chunk = lines[start:start + self.window]
            chunk_tokens = tuple(tok.lex('\n'.join(chunk), self.language))
            if not chunk_tokens:
                continue
            end_line = start + len(chunk)
            units.append(CodeUnit(
                file_path=file.path,
                kind=UnitKind.BLOCK,
                name=f"lines {start + 1}-{end_line}",
                span=Span(start + 1, 1, end_line, len(chunk[-1]) + 1),
                tokens=chunk_tokens,
                signature=tok.signature(chunk_tokens),
            ))
        return units

    def _patterns(self) -> List["re.Pattern[str]"]:
        if self.language == Language.PYTHON:
            return self.PYTHON_IMPORTS
        if self.language in (Language.JAVASCRIPT, Language.TYPESCRIPT, Language.TSX):
            return self.SCRIPT_IMPORTS
        if self.language == Language.JAVA:
            return self.JAVA_IMPORTS
        if self.language == Language.GO:
            return self.GO_IMPORTS
        if self.language == Language.RUST:
            return self.RUST_IMPORTS
        return []

    def _imports(self, content: str) -> List[ImportRef]:
        found = []
        for pattern in self._patterns():
            for match in pattern.finditer(content):
                targets = [match.group(1)]
                if pattern is self.PYTHON_IMPORT_LIST:
                    targets = [part.split()[0] for part in match.group(1).split(',') if part.strip()]
                line = content.count('\n', 0, match.start(1)) + 1
                for target in targets:
                    if not target:
                        continue
                    relative = target.startswith('.') if self.language == Language.PYTHON else _is_relative(target)
                    found.append(ImportRef(target=target, line=line, is_relative=relative))
        found.sort(key=lambda ref: (ref.line, ref.target))
        return found
