"""
Command-line tools for the board retrieval pipeline.
"""
