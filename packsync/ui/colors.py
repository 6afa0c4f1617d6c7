"""
Shared color definitions for terminal output.
"""


class Colors:
    RESET = "\x1b[0m"
    BOLD = "\x1b[1m"
    DIM = "\x1b[2m"
    GREEN = "\x1b[38;2;74;222;128m"
    RED = "\x1b[38;2;248;113;113m"
    YELLOW = "\x1b[38;2;250;204;21m"
    MUTED = "\x1b[38;2;148;163;184m"
