#!/usr/bin/env python3
"""
Zero Trust Decision Engine - Main Entry Point
==============================================

Request-level access decisions following NIST SP 800-207 zero trust
principles: risk scoring, trust levels, policy evaluation and auditing.

Usage:
    python main.py --help             # Show available commands
    python main.py test scenario      # Run demo decision scenarios
    python main.py test access ...    # Evaluate an access request
    python main.py policy matrix      # Show the RBAC permission matrix
    python main.py audit logs         # Browse the audit trail
"""

from zerotrust.cli.main import app

if __name__ == "__main__":
    app()
