"""CallGuard: policy gate for agent tool calls.

Detects leaked secrets, personally identifiable information and destructive
shell commands in tool-call parameters, and decides whether each call may
proceed, must be redacted, needs confirmation, or is blocked.
"""

__version__ = "1.0.0"
