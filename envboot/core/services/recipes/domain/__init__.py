"""
L1 Domain — pure logic: the subcommand protocol and resource lines.
No I/O, no subprocess.
"""
