"""Command line diagnostics for miniroute."""
