"""Landing-page generator: plans a site with Claude and writes a Next.js project."""

__version__ = "0.1.0"
