"""
Core client module.

Contains the early termination catalog, partial result decoding, the task
state machine and the dataset accessor. Import the public names from
``pekclient``.
"""
