"""Split a shell block into discrete top-level commands.

This is a line-oriented heuristic, not a shell parser. It understands just
enough structure to keep heredocs, multi-line ``python -c`` invocations and
backslash continuations together, and to skip lines that are captured
*output* pasted into the block rather than commands.

Noise policy: the output filters are deliberately narrow. When a line is
ambiguous it is kept as a command. Running a stray output line produces a
visible failure that the recovery loop can report; silently dropping a real
command does not.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence


@dataclass(frozen=True)
class NoiseFilter:
    """A named predicate that marks a trimmed line as output, not a command."""
    name: str
    matches: Callable[[str], bool]


def _regex(pattern: str, flags: int = 0) -> Callable[[str], bool]:
    compiled = re.compile(pattern, flags)
    return lambda line: compiled.search(line) is not None


# Shell syntax that makes an echo do real work
_ECHO_SIDE_EFFECT = re.compile(r"[>|;&`]|\$\(")


def _is_literal_echo(line: str) -> bool:
    """``echo "Done!"`` style prints. Echoes that write, pipe or chain are commands."""
    if not re.match(r"^echo\s+[\"']", line):
        return False
    return _ECHO_SIDE_EFFECT.search(line) is None


DEFAULT_NOISE_FILTERS: List[NoiseFilter] = [
    NoiseFilter("comment", lambda line: line.startswith("#")),
    NoiseFilter("literal_echo", _is_literal_echo),
    # ls -l output: "drwxr-xr-x  5 user staff ..." and its "total 48" header
    NoiseFilter("directory_listing", _regex(r"^[-dlcbps][rwxsStT-]{9}[@+.]?\s+\d+\s")),
    NoiseFilter("listing_total", _regex(r"^total \d+$")),
    # Status banners and test-runner summaries
    NoiseFilter("status_banner", _regex("^(?:✅|❌|✔|✖|✓|✗|⚠|\U0001f680|\U0001f4e6|==>)")),
    NoiseFilter("test_summary", _regex(r"^(?:Tests?|Test Suites|Snapshots|Time):\s+\d")),
    NoiseFilter("pass_fail_line", _regex(r"^(?:PASS|FAIL)\s+\S+\.\w+")),
    # Stack trace fragments (JS, Python, Java)
    NoiseFilter("js_stack_frame", _regex(r"^at\s+\S+.*\(.*:\d+:\d+\)$")),
    NoiseFilter("python_traceback", _regex(r'^(?:Traceback \(most recent call last\):|File ".+", line \d+)')),
    NoiseFilter("exception_line", _regex(r"^[A-Z]\w*(?:Error|Exception):\s")),
    # Horizontal rules: ----, ====, ****, box drawing
    NoiseFilter("separator", _regex("^(?:[-=_*~]{3,}|[─-╿]{3,})$")),
    NoiseFilter("semver", _regex(r"^v?\d+\.\d+\.\d+(?:[-+][\w.]+)?$")),
]


def is_noise_line(line: str, noise_filters: Sequence[NoiseFilter] = DEFAULT_NOISE_FILTERS) -> Optional[str]:
    """Return the name of the first filter matching ``line``, or None."""
    stripped = line.strip()
    for noise_filter in noise_filters:
        if noise_filter.matches(stripped):
            return noise_filter.name
    return None


# `$ npm test` (bash) and `% npm test` (zsh)
_PROMPT_PREFIX = re.compile(r"^[$%]\s+")

# `cat > f <<'EOF'`, `<<-EOF`, `<< "EOF" > out`; never the `<<<` here-string
_HEREDOC_OPEN = re.compile(r"(?<!<)<<-?\s*(['\"]?)([A-Za-z_][\w.-]*)\1(?=\s|$)")

_INLINE_PYTHON_OPEN = re.compile(r"^python3?\s+-c\s+(['\"])")


def _heredoc_delimiter(line: str) -> Optional[str]:
    match = _HEREDOC_OPEN.search(line)
    return match.group(2) if match else None


def _unclosed_inline_quote(line: str) -> Optional[str]:
    """Quote character of a ``python -c`` argument left open on this line."""
    match = _INLINE_PYTHON_OPEN.match(line)
    if not match:
        return None
    quote = match.group(1)
    closing = r"'" if quote == "'" else r'(?<!\\)"'
    if re.search(closing, line[match.end():]) is None:
        return quote
    return None


def segment_commands(
    code: str,
    noise_filters: Sequence[NoiseFilter] = DEFAULT_NOISE_FILTERS,
) -> List[str]:
    """
    Split one block's text into ordered top-level commands.

    Args:
        code: Raw text of a shell code block
        noise_filters: Ordered predicates identifying captured output lines

    Returns:
        Commands in block order; multi-line commands keep their newlines
    """
    lines = code.splitlines()
    commands: List[str] = []
    i = 0

    while i < len(lines):
        line = _PROMPT_PREFIX.sub("", lines[i].strip())
        i += 1

        if not line:
            continue
        if is_noise_line(line, noise_filters):
            continue

        delimiter = _heredoc_delimiter(line)
        if delimiter is not None:
            # Body lines are kept verbatim; an unterminated heredoc runs to the end
            span = [line]
            while i < len(lines):
                body = lines[i]
                i += 1
                span.append(body)
                if body.strip() == delimiter:
                    break
            commands.append("\n".join(span))
            continue

        quote = _unclosed_inline_quote(line)
        if quote is not None:
            span = [line]
            while i < len(lines):
                body = lines[i]
                i += 1
                span.append(body)
                if body.rstrip().endswith(quote):
                    break
            commands.append("\n".join(span))
            continue

        if line.endswith("\\"):
            span = [line]
            while i < len(lines):
                body = lines[i].strip()
                i += 1
                span.append(body)
                if not body.endswith("\\"):
                    break
            commands.append("\n".join(span))
            continue

        commands.append(line)

    return commands
