"""Sub-agents for the Orchestrator.

Contains the components driven by the generate/build/refine loop.
"""

from .generator import CodeGenerator
from .qa import QAAgent
from .verifier import BuildVerifier

__all__ = ["CodeGenerator", "BuildVerifier", "QAAgent"]
