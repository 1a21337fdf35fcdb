"""ccline - Python distribution of the CCometixLine status-line binary.

Installs the precompiled native ``ccline`` executable for the host platform
into ``~/.claude/ccline/`` and forwards every invocation to it.
"""

__version__ = "1.0.8"
