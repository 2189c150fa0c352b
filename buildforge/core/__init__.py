"""
Core Infrastructure for BuildForge.

The innermost layer: everything under buildforge.build, buildforge.server
and buildforge.cli depends on it, and it depends on none of them.

Components
----------
**Configuration (config/)**
    BuildConfig dataclasses, buildforge.yaml loading with ${VAR_NAME}
    expansion and BUILDFORGE_* environment overrides.

**Logging (logging.py)**
    Structured logging with context fields and a BuildLogger that times
    each stage.

**Exceptions (exceptions.py)**
    BuildForgeError hierarchy; every error carries why_it_happened and
    how_to_fix for the CLI error panel.

**Processes (process.py)**
    CommandRunner protocol for the external toolchain.

**Versioning (versioning/)**
    Manifest version agreement.

**Pipeline (pipeline/)**
    SequentialStage, ParallelGroup and the fail-fast BuildRunner.
"""
