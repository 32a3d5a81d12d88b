"""Workspace and toolchain context for fix-analysis prompts."""

import os
import platform
import shutil
from pathlib import Path
from typing import Dict, List, Optional


# binary -> display name; only tools found on PATH are reported
TOOLCHAINS: Dict[str, str] = {
    "node": "Node.js",
    "npm": "npm",
    "yarn": "Yarn",
    "pnpm": "pnpm",
    "python3": "Python 3",
    "pip3": "pip",
    "php": "PHP",
    "composer": "Composer",
    "go": "Go",
    "cargo": "Rust (cargo)",
    "java": "Java",
    "dotnet": ".NET",
    "flutter": "Flutter",
    "ruby": "Ruby",
    "docker": "Docker",
    "git": "git",
}

# marker file -> project type
PROJECT_MARKERS: Dict[str, str] = {
    "package.json": "Node.js",
    "pyproject.toml": "Python",
    "requirements.txt": "Python",
    "composer.json": "PHP",
    "go.mod": "Go",
    "Cargo.toml": "Rust",
    "pubspec.yaml": "Flutter",
    "Gemfile": "Ruby",
    "build.gradle": "Gradle",
    "pom.xml": "Maven",
}


def _find_git_root(path: Path) -> Optional[Path]:
    for candidate in [path, *path.parents]:
        if (candidate / ".git").exists():
            return candidate
    return None


def detect_environment(cwd: str) -> dict:
    """Collect OS, shell, git and toolchain facts for ``cwd``. No subprocesses."""
    workspace = Path(cwd).resolve()
    git_root = _find_git_root(workspace)

    project_types: List[str] = []
    if workspace.is_dir():
        for marker, kind in PROJECT_MARKERS.items():
            if (workspace / marker).exists() and kind not in project_types:
                project_types.append(kind)

    return {
        "os": f"{platform.system()} {platform.release()}".strip(),
        "shell": os.environ.get("SHELL", ""),
        "workspace": str(workspace),
        "git_repository": git_root is not None,
        "git_root": str(git_root) if git_root else None,
        "project_types": project_types,
        "tools": [name for binary, name in TOOLCHAINS.items() if shutil.which(binary)],
    }


def environment_summary(env: dict) -> str:
    """Render ``detect_environment`` output as prompt-ready lines."""
    lines = [
        f"- OS: {env.get('os') or 'unknown'}",
        f"- Shell: {env.get('shell') or 'unknown'}",
        f"- Workspace: {env.get('workspace')}",
    ]
    if env.get("git_repository"):
        lines.append(f"- Git repository: yes (root: {env.get('git_root')})")
    else:
        lines.append("- Git repository: no")
    if env.get("project_types"):
        lines.append(f"- Project type: {', '.join(env['project_types'])}")
    tools = env.get("tools") or []
    lines.append(f"- Available tools: {', '.join(tools) if tools else 'none detected'}")
    return "\n".join(lines)
