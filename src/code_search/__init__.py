"""
Code Search - bounded local code search on top of ripgrep, grep and find.

Backend commands are validated before they run, executed under timeout and
output-size supervision, and their output is parsed into paginated,
offset-accurate match data.
"""

__version__ = "0.1.0"
