"""
Download/upload pipelines and the command-line interface built on them.
"""
