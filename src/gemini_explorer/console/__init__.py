"""
Console subpackage: holds the command dispatcher, REPL loop, rendering and history state.
"""
