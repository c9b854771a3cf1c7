"""tasklink: link task notes to source notes and watch saved queries."""

__version__ = "0.1.0"
