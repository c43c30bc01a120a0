"""Solver backends for mbarewrite.mba.

- z3: Z3 SMT solver backend for equivalence checking

Each backend is optional and only imported on use.
"""
