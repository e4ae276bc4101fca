"""Streaming chunk converters. Each takes (chunk, state) and returns a list; chunk=None flushes."""
