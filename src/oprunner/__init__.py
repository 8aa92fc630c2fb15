"""
oprunner (opr) - Sequential operation runner

Runs an ordered queue of named, fallible steps with:
- One background thread per run, no overlapping steps
- Precondition gates and fail-fast abort on the first failure
- Status, log and completion events for any observer
- YAML plan files of shell commands driven from the CLI
"""

__version__ = "0.1.0"
__package_name__ = "oprunner"
__short_name__ = "opr"
