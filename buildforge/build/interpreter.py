"""
Interpreter Directive Normalization.

CLI bundles are shipped as standalone executables, so their first line must
be exactly one ``#!`` directive. Entry points may already carry one, and a
faulty earlier run may have stacked several, so normalization removes every
leading directive line before prepending the canonical one:

    #!/usr/bin/env node          #!/usr/bin/env node
    #!/usr/bin/env node    ->    "use strict";...
    "use strict";...

Running it any number of times yields the same bytes.
"""

from __future__ import annotations

import os
import stat
from pathlib import Path

from buildforge.core.exceptions import IOError
from buildforge.core.logging import get_logger

logger = get_logger(__name__)

DIRECTIVE_PREFIX = "#!"
DEFAULT_DIRECTIVE = "#!/usr/bin/env node"
EXECUTABLE_MODE = 0o755


def strip_directives(content: str) -> str:
    """Remove the leading run of interpreter-directive lines."""
    lines = content.splitlines(keepends=True)
    index = 0
    while index < len(lines) and lines[index].startswith(DIRECTIVE_PREFIX):
        index += 1
    return "".join(lines[index:])


def normalize_content(content: str, directive: str = DEFAULT_DIRECTIVE) -> str:
    """Content with exactly one leading directive."""
    return f"{directive}\n{strip_directives(content)}"


def count_directives(content: str) -> int:
    """Number of leading directive lines."""
    count = 0
    for line in content.splitlines():
        if not line.startswith(DIRECTIVE_PREFIX):
            break
        count += 1
    return count


def normalize_interpreter(path: Path, directive: str = DEFAULT_DIRECTIVE) -> bool:
    """Normalize the directive of ``path`` and mark it executable.

    Returns:
        True if the file content changed.

    Raises:
        IOError: If the file cannot be read or written.
    """
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            content = f.read()
        normalized = normalize_content(content, directive)
        changed = normalized != content
        if changed:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(normalized)
        os.chmod(path, EXECUTABLE_MODE)
    except OSError as e:
        raise IOError(f"Could not normalize executable {path}: {e}", path=path) from e

    logger.debug("Normalized interpreter directive", path=path, changed=changed)
    return changed


def is_executable(path: Path) -> bool:
    """True when owner, group and others may execute the file."""
    mode = path.stat().st_mode
    return bool(mode & stat.S_IXUSR and mode & stat.S_IXGRP and mode & stat.S_IXOTH)
