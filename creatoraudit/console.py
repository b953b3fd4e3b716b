from __future__ import annotations

from termcolor import colored


def ok(msg: str) -> str:
    return f"{colored('[+] ', 'green')}{msg}"


def info(msg: str) -> str:
    return f"{colored('[*] ', 'yellow')}{msg}"


def warn(msg: str) -> str:
    return f"{colored('[!] ', 'yellow')}{msg}"


def err(msg: str) -> str:
    return f"{colored('[-] ', 'red')}{msg}"
