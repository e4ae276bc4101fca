"""Request body converters. Each takes (model, body, stream, credentials)."""
