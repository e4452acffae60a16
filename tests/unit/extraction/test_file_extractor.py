"""
Unit Tests for FileExtractor

Covers the three extraction passes and README synthesis.
"""
import pytest

from appforge.modules.extraction.file_extractor import (
    CONTENT_RULES,
    PLACEHOLDER_README,
    FileExtractor,
    match_path_comment,
    normalize_path,
)


@pytest.fixture
def extractor() -> FileExtractor:
    return FileExtractor()


class TestPathComments:
    """Test recognition of path comment lines"""

    @pytest.mark.parametrize('line,expected', [
        ('// src/App.tsx', 'src/App.tsx'),
        ('# server.py', 'server.py'),
        ('### src/App.tsx', 'src/App.tsx'),
        ('// File: src/index.ts', 'src/index.ts'),
        ('/* src/index.css */', 'src/index.css'),
        ('<!-- public/index.html -->', 'public/index.html'),
        ('// `./src/utils.ts`', 'src/utils.ts'),
    ])
    def test_recognizes_path_comments(self, line, expected):
        """Test comment styles that name a file"""
        assert match_path_comment(line) == expected

    @pytest.mark.parametrize('line', [
        '// render the app',
        '# install dependencies',
        'const x = 1; // src/App.tsx',
        '// e.g. something',
    ])
    def test_ignores_ordinary_comments(self, line):
        """Test comments that are not file names"""
        assert match_path_comment(line) is None

    @pytest.mark.parametrize('raw,expected', [
        ('../../etc/passwd.txt', 'etc/passwd.txt'),
        ('./src/../lib/api.ts', 'lib/api.ts'),
        ('/src//App.tsx', 'src/App.tsx'),
        ('src\\components\\Nav.tsx', 'src/components/Nav.tsx'),
        ('..', ''),
    ])
    def test_normalize_path_stays_relative(self, raw, expected):
        """Test parent references never climb above the project root"""
        assert normalize_path(raw) == expected

    def test_parent_references_are_dropped_from_extracted_paths(self, extractor):
        text = (
            '// ../../home/user/.bashrc.sh\n'
            'echo pwned\n'
            '// src/App.tsx\n'
            'export default App;\n'
        )

        files = extractor.extract_files(text)

        assert sorted(files) == ['home/user/.bashrc.sh', 'src/App.tsx']
        assert not any('..' in path.split('/') for path in files)


class TestPathCommentPass:
    """Test the first extraction pass"""

    def test_scenario_package_and_app(self, extractor):
        """Test two path-comment files are split exactly"""
        text = '// package.json\n{"name":"x"}\n// src/App.tsx\nimport React from \'react\';'

        files = extractor.extract_files(text)

        assert files == {
            'package.json': '{"name":"x"}',
            'src/App.tsx': "import React from 'react';",
        }

    def test_path_comment_inside_fences(self, extractor):
        """Test a path comment on the first line of each fenced block"""
        text = (
            '```tsx\n// src/App.tsx\nconst a = 1;\n```\n\n'
            '```css\n/* src/index.css */\nbody {}\n```'
        )

        assert extractor.extract_files(text) == {
            'src/App.tsx': 'const a = 1;',
            'src/index.css': 'body {}',
        }

    def test_path_comment_above_fence_excludes_trailing_prose(self, extractor):
        """Test a comment directly above a fence names only that block"""
        text = '// src/a.ts\n\n```ts\nexport const a = 1;\n```\nSome prose after.'

        assert extractor.extract_files(text) == {'src/a.ts': 'export const a = 1;'}

    def test_markdown_heading_names_block(self, extractor):
        """Test a '###' heading with a path names the following fence"""
        text = '### src/App.tsx\n```tsx\nexport default 1;\n```'

        assert extractor.extract_files(text) == {'src/App.tsx': 'export default 1;'}

    def test_unterminated_fence_runs_to_end(self, extractor):
        """Test an unterminated fence does not lose its content"""
        text = '// src/a.ts\n```ts\nconst x = 1;'

        assert extractor.extract_files(text) == {'src/a.ts': 'const x = 1;'}

    def test_whitespace_only_content_is_dropped(self, extractor):
        """Test files whose content trims to empty are discarded"""
        text = '// a.ts\n   \n// b.ts\nconst b = 1;'

        assert extractor.extract_files(text) == {'b.ts': 'const b = 1;'}

    def test_duplicate_path_keeps_later_block(self, extractor):
        """Test the later of two same-path blocks wins"""
        text = '// a.ts\nfirst\n// a.ts\nsecond'

        assert extractor.extract_files(text) == {'a.ts': 'second'}

    def test_content_is_trimmed_but_otherwise_verbatim(self, extractor):
        """Test inner whitespace and indentation survive extraction"""
        body = 'function f() {\n    return 1;\n}\n\n\nexport default f;'
        text = f'// src/f.ts\n\n{body}\n\n'

        assert extractor.extract_files(text)['src/f.ts'] == body

    def test_first_pass_is_authoritative(self, extractor):
        """Test sniffing does not add files when path comments were found"""
        text = "// src/main.ts\nimport React from 'react';"

        assert extractor.extract_files(text) == {'src/main.ts': "import React from 'react';"}


class TestFencedBlockPass:
    """Test the second extraction pass"""

    def test_info_string_path(self, extractor):
        """Test a path in the fence info string"""
        text = 'Here:\n```tsx:src/App.tsx\nexport default App;\n```'

        assert extractor.extract_files(text) == {'src/App.tsx': 'export default App;'}

    def test_info_string_title_attribute(self, extractor):
        """Test a title= attribute in the fence info string"""
        text = '```tsx title="src/components/Button.tsx"\nexport const Button = 1;\n```'

        assert extractor.extract_files(text) == {
            'src/components/Button.tsx': 'export const Button = 1;'
        }

    def test_bold_path_line_above_fence(self, extractor):
        """Test a bare **path** line right before the fence"""
        text = '**src/server.ts**\n```ts\nconst app = 1;\n```'

        assert extractor.extract_files(text) == {'src/server.ts': 'const app = 1;'}

    def test_language_only_info_is_not_a_path(self, extractor):
        """Test 'json' alone never becomes a file name"""
        blocks = extractor.scan_fenced_blocks('```json\n{"a": 1}\n```')

        name, _ = extractor.name_block(blocks[0])

        assert name is None

    def test_scan_handles_unterminated_fence(self, extractor):
        """Test the scanner keeps an unterminated block"""
        blocks = extractor.scan_fenced_blocks('```ts\nconst a = 1;\nconst b = 2;')

        assert len(blocks) == 1
        assert blocks[0].body == 'const a = 1;\nconst b = 2;'


class TestContentSniffingPass:
    """Test the third extraction pass"""

    def test_unnamed_blocks_are_sniffed(self, extractor):
        """Test canonical paths are assigned by content markers"""
        text = (
            '```json\n{"compilerOptions": {}}\n```\n'
            "```js\nimport React from 'react';\n```\n"
            '```html\n<!DOCTYPE html><html></html>\n```'
        )

        files = extractor.extract_files(text)

        assert set(files) == {'tsconfig.json', 'src/App.tsx', 'public/index.html'}
        assert files['tsconfig.json'] == '{"compilerOptions": {}}'

    def test_first_matching_rule_wins(self, extractor):
        """Test rule order decides between overlapping markers"""
        text = '```json\n{"compilerOptions": {}, "dependencies": {}}\n```'

        assert list(extractor.extract_files(text)) == ['tsconfig.json']

    def test_unrecognized_block_is_dropped(self, extractor):
        """Test blocks matching no rule are not extracted"""
        assert extractor.extract_files('```\nhello world\n```') == {}

    def test_plain_text_without_fences_is_sniffed(self, extractor):
        """Test an unfenced code blob is treated as one region"""
        text = "import React from 'react';\nexport default function App() {}"

        assert extractor.extract_files(text) == {'src/App.tsx': text}

    def test_server_entry_rule(self, extractor):
        """Test a backend entry is recognized by its framework import"""
        text = "```ts\nimport express from 'express';\nconst app = express();\n```"

        assert list(extractor.extract_files(text)) == ['src/index.ts']

    def test_rules_table_order(self):
        """Test the rule table starts with the most specific manifests"""
        assert [rule.path for rule in CONTENT_RULES][:2] == ['tsconfig.json', 'package.json']


class TestReadmeSynthesis:
    """Test the synthetic README.md"""

    def test_readme_from_leading_prose(self, extractor):
        """Test prose before the first file becomes the README"""
        files = extractor.extract('Intro text.\n\n// src/a.ts\nconst a = 1;')

        assert files == {'README.md': 'Intro text.', 'src/a.ts': 'const a = 1;'}

    def test_explicit_prose_wins(self, extractor):
        """Test a prose argument overrides derived text"""
        files = extractor.extract('// src/a.ts\nconst a = 1;', prose='  A todo app.  ')

        assert files['README.md'] == 'A todo app.'

    def test_extracted_readme_wins(self, extractor):
        """Test a README.md in the text replaces the synthetic one"""
        files = extractor.extract('Some intro.\n\n// README.md\n# Real readme')

        assert files['README.md'] == '# Real readme'

    @pytest.mark.parametrize('text', [None, '', '   \n  '])
    def test_empty_input_yields_placeholder(self, extractor, text):
        """Test empty input still produces a README"""
        assert extractor.extract(text) == {'README.md': PLACEHOLDER_README}

    def test_code_only_input_yields_placeholder(self, extractor):
        """Test unrecognized fenced-only input falls back to the placeholder"""
        assert extractor.extract('```\nhello world\n```') == {'README.md': PLACEHOLDER_README}

    def test_strip_code_removes_fences(self):
        """Test fenced regions are cut out of the prose"""
        text = 'Before\n```js\nconst a = 1;\n```\nAfter'

        assert FileExtractor.strip_code(text) == 'Before\nAfter'

