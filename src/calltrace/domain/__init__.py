"""calltrace domain layer.

Pure domain logic: trace model, events, exceptions.
Only stdlib imports.
"""
