"""Tool-call policy: verdicts, output filtering and agent context."""
