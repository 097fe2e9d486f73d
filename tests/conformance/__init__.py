"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the exchange ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Coins are never created or destroyed by exchanges
2. atomicity.py - A settlement applies every effect or none
3. idempotency.py - A request settles at most once
4. determinism.py - Same inputs, same outputs
5. state_machine.py - Terminal states never change

These tests use hypothesis for property-based testing.
"""
