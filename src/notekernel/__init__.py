"""NoteKernel - boot core for a locally served note-taking kernel.

Claims exclusive ownership of a workspace directory, resolves which
workspace to use across runs, derives its directory tree, and sequences
startup so dependent subsystems can poll progress or block until ready.

Package entry point. Exports the version string only; all functional
modules are imported lazily by main.py to keep startup fast.
"""

__version__ = "3.1.11"
