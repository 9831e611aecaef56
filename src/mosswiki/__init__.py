"""MossWiki: markdown knowledge base renderer and server."""
