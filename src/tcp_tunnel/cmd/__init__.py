"""Command line interface modules.

This package hosts tunnels from the command line: it parses options or a
configuration file, starts the tunnels, wires process signals to their
shutdown and reports errors.
"""
