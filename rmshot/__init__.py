"""rmshot - insert reMarkable tablet screenshots into markdown documents.

Wraps the external ``resnap-rs`` capture tool behind a tool plugin and a
small command line shell.
"""

__version__ = "0.1.0"
