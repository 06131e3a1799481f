"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the vault ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Value is never created or destroyed; redemption pays everything
2. atomicity.py - All-or-nothing operation semantics
3. idempotency.py - Repeated sweeps, claims and submissions are harmless
4. access_control.py - Owner-only and permissionless operations
5. canonicalization.py - Content-addressable intent identity

These tests use hypothesis for property-based testing.
"""
