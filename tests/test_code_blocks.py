"""Tests for shell code block extraction."""

from aibuddy_exec.code_blocks import extract_code_blocks


RESPONSE = """Install the dependencies first:

```bash
npm install
```

Your config should look like this:

```json
{"name": "app"}
```

Then start it:

```sh
npm run dev
```
"""


class TestExtractCodeBlocks:
    """Only shell-tagged fences are returned, in document order."""

    def test_shell_blocks_in_order(self):
        blocks = extract_code_blocks(RESPONSE)
        assert [b.language for b in blocks] == ["bash", "sh"]
        assert blocks[0].code == "npm install\n"
        assert blocks[1].code == "npm run dev\n"

    def test_all_shell_tags_accepted(self):
        text = "\n".join(f"```{tag}\necho {tag}\n```" for tag in ("bash", "sh", "shell", "zsh"))
        blocks = extract_code_blocks(text)
        assert [b.language for b in blocks] == ["bash", "sh", "shell", "zsh"]

    def test_untagged_and_other_languages_excluded(self):
        text = "```\nls\n```\n\n```python\nprint('hi')\n```\n\n```yaml\nkey: value\n```"
        assert extract_code_blocks(text) == []

    def test_tag_is_case_insensitive_and_normalized(self):
        blocks = extract_code_blocks("```BASH\nls\n```")
        assert len(blocks) == 1
        assert blocks[0].language == "bash"

    def test_multiline_block_kept_whole(self):
        blocks = extract_code_blocks("```bash\nmkdir app\ncd app\nnpm init\n```")
        assert blocks[0].code == "mkdir app\ncd app\nnpm init\n"

    def test_empty_and_plain_text(self):
        assert extract_code_blocks("") == []
        assert extract_code_blocks("Just run npm install and you are done.") == []

    def test_unclosed_fence_ignored(self):
        assert extract_code_blocks("```bash\nnpm install\n") == []
