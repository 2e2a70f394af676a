"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Token conservation and pool counter consistency
2. atomicity.py - All-or-nothing operations
3. overflow.py - u64 overflow aborts with counters unchanged
4. isolation.py - Concurrent operations on one record serialize

These tests use hypothesis for property-based testing.
"""
