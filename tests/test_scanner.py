"""Tests for file discovery."""
import pytest

from aiready.analyzer.scanner import FileScanner, expand_braces, is_source_file, matches
from aiready.errors import ScanError


@pytest.fixture
def project(make_project):
    return make_project({
        'app.py': "print('hi')\n",
        'src/util.ts': "export const a = 1;\n",
        'src/view.tsx': "export const V = () => null;\n",
        'lib/Main.java': "class Main {}\n",
        'cmd/main.go': "package main\n",
        'README.md': "# readme\n",
        'node_modules/pkg/index.js': "module.exports = 1;\n",
        'dist/bundle.js': "var a;\n",
        'web/app.min.js': "var b;\n",
        'web/app.bundle.js': "var c;\n",
        'coverage/report.js': "var d;\n",
    })


class TestScan:
    """Include/exclude handling."""

    def test_default_patterns(self, project):
        assert FileScanner(project).scan() == [
            'app.py', 'lib/Main.java', 'src/util.ts', 'src/view.tsx',
        ]

    def test_custom_include(self, project):
        assert FileScanner(project).scan(include=['**/*.go']) == ['cmd/main.go']

    def test_user_excludes_extend_defaults(self, project):
        found = FileScanner(project).scan(include=['**/*.js', '**/*.ts'], exclude=['src/**'])
        assert found == []

    def test_broad_include_keeps_source_files_only(self, project):
        assert FileScanner(project).scan(include=['**/*']) == [
            'app.py', 'cmd/main.go', 'lib/Main.java', 'src/util.ts', 'src/view.tsx',
        ]

    def test_default_excludes_always_apply(self, project):
        found = FileScanner(project).scan(include=['**/*.js'])
        assert found == []

    def test_paths_are_relative_and_sorted(self, project):
        found = FileScanner(project).scan()
        assert found == sorted(found)
        assert all(not path.startswith('/') for path in found)


class TestRoot:
    def test_missing_root(self, tmp_path):
        with pytest.raises(ScanError, match="does not exist"):
            FileScanner(tmp_path / 'nope')

    def test_root_is_a_file(self, tmp_path):
        target = tmp_path / 'file.py'
        target.write_text("x = 1\n")
        with pytest.raises(ScanError, match="not a directory"):
            FileScanner(target)


class TestReadContent:
    def test_preserves_line_endings(self, tmp_path):
        (tmp_path / 'crlf.py').write_bytes(b"a = 1\r\nb = 2\r\n")
        assert FileScanner(tmp_path).read_content('crlf.py') == "a = 1\r\nb = 2\r\n"

    def test_undecodable_file_raises(self, tmp_path):
        (tmp_path / 'bad.py').write_bytes(b"\xff\xfe\x00\x80")
        with pytest.raises(UnicodeDecodeError):
            FileScanner(tmp_path).read_content('bad.py')


def test_expand_braces():
    assert expand_braces('**/*.{ts,js}') == ['**/*.ts', '**/*.js']
    assert expand_braces('{a,b}/{c,d}') == ['a/c', 'a/d', 'b/c', 'b/d']
    assert expand_braces('plain/*.py') == ['plain/*.py']


def test_matches_root_level_double_star():
    assert matches('app.py', '**/*.py')
    assert matches('deep/nested/app.py', '**/*.py')
    assert not matches('app.pyc', '**/*.py')


def test_is_source_file():
    assert is_source_file('src/app.ts')
    assert is_source_file('main.rs')
    assert not is_source_file('README.md')
    assert not is_source_file('Makefile')
