from .dsl import sh, tool, git_tool, archive_tool, binary, file_exists, python_module, when_release
from .config import EnvironmentConfig
from .model import Step, ToolSpec, ToolState, VerificationResult
from .orchestrator import run_setup
from .tools import ensure_tool

__all__ = [
    "sh", "tool", "git_tool", "archive_tool", "binary", "file_exists", "python_module", "when_release",
    "EnvironmentConfig", "Step", "ToolSpec", "ToolState", "VerificationResult", "run_setup", "ensure_tool",
]
