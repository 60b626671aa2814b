"""
Homestay Kernel - licensing workflow core

The application lifecycle engine for homestay/B&B registration:
- One shared state machine for registrations and service requests
- Eligibility derived on read, never stored
- Atomic payment settlement and certificate issuance
- Parallel legacy RC onboarding track
- Append-only audit trail of every transition
"""

__version__ = "0.1.0"
