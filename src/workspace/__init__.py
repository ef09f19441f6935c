"""
Workspace — Per-deployment scratch directories.

Each pipeline invocation owns one `Target-*` directory under the workspace
root: the clone of the deployment branch that gets cleared, refilled from
the release archive and committed.
"""
