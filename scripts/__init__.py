"""Command line tools for running and inspecting a Hackstead farm."""
