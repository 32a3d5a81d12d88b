"""Turn an AI response into the command list the executor runs."""

from typing import List, Sequence

from aibuddy_exec.code_blocks import extract_code_blocks
from aibuddy_exec.git_safety import build_git_safe_sequence
from aibuddy_exec.non_interactive import inject_non_interactive_flags
from aibuddy_exec.segmenter import DEFAULT_NOISE_FILTERS, NoiseFilter, segment_commands


def plan_commands(
    response_text: str,
    noise_filters: Sequence[NoiseFilter] = DEFAULT_NOISE_FILTERS,
) -> List[str]:
    """
    Extract, segment and harden the commands in an AI response.

    Blocks are segmented independently and concatenated in document order;
    the git guards are applied once to the whole batch so there is a single
    stash and a single pop.
    """
    commands: List[str] = []
    for block in extract_code_blocks(response_text):
        commands.extend(segment_commands(block.code, noise_filters))
    commands = inject_non_interactive_flags(commands)
    return build_git_safe_sequence(commands)
