"""
Build stages for the web-terminal artifacts.

    from buildforge.build import assemble_plan

    plan = assemble_plan(config)
    outcome = plan.runner().run()
"""

from buildforge.build.artifacts import ArtifactSpec, ModuleFormat, TargetPlatform
from buildforge.build.native import NativeArtifactSet, NativeExecutableBuilder
from buildforge.build.plan import BuildPlan, assemble_plan, run_build

__all__ = [
    "ArtifactSpec",
    "BuildPlan",
    "ModuleFormat",
    "NativeArtifactSet",
    "NativeExecutableBuilder",
    "TargetPlatform",
    "assemble_plan",
    "run_build",
]
