"""
AWS Account Operator integration-test harness.

Drives AccountClaim / Account custom resources through the cluster
control plane and asserts on the state the operator produces.
"""

__version__ = "0.1.0"
